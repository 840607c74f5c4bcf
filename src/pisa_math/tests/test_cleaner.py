import numpy as np
import pandas as pd
import pytest

from pisa_math.cleaner import (
    TARGET_DTYPE,
    Cleaner,
    ColumnKind,
    binarize_target,
    missing_report,
)
from pisa_math.errors import DataShapeError


def _cleaner(**kwargs):
    return Cleaner(target_col="FAIL", positive_values=[1], **kwargs)


def test_cleaner_keeps_all_columns_with_two_percent_missing(survey):
    df = survey(n_rows=1000, n_items=10, missing_cols=3, missing_rate=0.02, target_missing=15)

    for policy in ("all_missing", "threshold"):
        out = _cleaner(missing_policy=policy).transform(df)
        assert [c for c in out.columns if c != "FAIL"] == [f"ST{i:02d}Q01" for i in range(10)]
        assert len(out) == 1000 - 15


def test_cleaner_output_has_no_missing_cells(survey):
    df = survey(missing_rate=0.2)
    out = _cleaner().transform(df)
    assert out.isna().sum().sum() == 0


def test_cleaner_distinct_values_grow_by_at_most_one(survey):
    df = survey(missing_rate=0.1)
    out = _cleaner().transform(df)
    rows = df["FAIL"].notna()
    for col in out.columns.drop("FAIL"):
        assert out[col].nunique() <= df.loc[rows, col].nunique() + 1


def test_cleaner_casts_predictors_to_categorical_and_binarizes_target(survey):
    out = _cleaner().transform(survey())
    for col in out.columns.drop("FAIL"):
        assert isinstance(out[col].dtype, pd.CategoricalDtype)
    assert out["FAIL"].dtype == TARGET_DTYPE
    assert set(out["FAIL"].astype(int).unique()) == {0, 1}


def test_cleaner_uses_zero_as_missing_category(survey):
    df = survey(missing_rate=0.1)
    out = _cleaner().transform(df)
    filled = df["ST00Q01"].isna() & df["FAIL"].notna()
    assert (out.loc[filled[filled].index, "ST00Q01"] == 0).all()


def test_cleaner_drops_fully_missing_columns():
    df = pd.DataFrame(
        {
            "ST01Q01": [1, 2, np.nan, 1],
            "ST02Q01": [np.nan] * 4,
            "FAIL": [1, 2, 3, 1],
        }
    )
    cleaner = _cleaner()
    out = cleaner.transform(df)
    assert "ST02Q01" not in out.columns
    assert cleaner.summary_.dropped_columns == {"ST02Q01": "all missing"}


def test_missing_policies_disagree_on_partially_missing_columns():
    # ST02Q01 is 25% missing: above the 5% threshold but not fully missing
    df = pd.DataFrame(
        {
            "ST01Q01": [1, 2, 3, 4, 1, 2, 3, 4],
            "ST02Q01": [1, np.nan, 2, np.nan, 1, 2, 3, 4],
            "FAIL": [1, 2, 1, 2, 1, 2, 1, 2],
        }
    )
    lenient = _cleaner(missing_policy="all_missing")
    strict = _cleaner(missing_policy="threshold", max_missing_fraction=0.05)

    out_lenient = lenient.transform(df)
    out_strict = strict.transform(df)

    assert "ST02Q01" in out_lenient.columns
    assert lenient.summary_.kept_above_threshold == ["ST02Q01"]
    assert "ST02Q01" not in out_strict.columns
    assert strict.schema_["ST02Q01"].kind is ColumnKind.EXCLUDED


def test_cleaner_manual_exclusions_and_numeric_columns():
    df = pd.DataFrame(
        {
            "STIDSTD": [1, 2, 3, 4],
            "ST01Q01": [1, 2, np.nan, 1],
            "AGE": [15.0, np.nan, 16.0, 17.0],
            "FAIL": [1, 2, 3, 1],
        }
    )
    cleaner = _cleaner(exclude_cols=["STIDSTD"], numeric_cols=["AGE"])
    out = cleaner.transform(df)

    assert "STIDSTD" not in out.columns
    assert cleaner.schema_["AGE"].kind is ColumnKind.NUMERIC
    assert pd.api.types.is_float_dtype(out["AGE"])
    assert out.loc[1, "AGE"] == 16.0


def test_sentinel_avoids_observed_categories():
    df = pd.DataFrame(
        {
            "ST01Q01": [0, 1, np.nan, 2],
            "ST02Q01": ["a", "0", None, "b"],
            "FAIL": [1, 2, 3, 1],
        }
    )
    cleaner = _cleaner()
    out = cleaner.transform(df)

    assert cleaner.schema_["ST01Q01"].sentinel == 3
    assert cleaner.schema_["ST02Q01"].sentinel == "0_missing"
    assert out.loc[2, "ST01Q01"] == 3
    assert out.loc[2, "ST02Q01"] == "0_missing"


def test_schema_can_be_reused_on_another_table(survey):
    cleaner = _cleaner()
    schema = cleaner.infer_schema(survey(seed=1))
    out = cleaner.transform(survey(seed=2), schema=schema)
    assert out.isna().sum().sum() == 0


def test_binarize_target_is_idempotent():
    y = pd.Series([1, 2, 3, 4, 1, np.nan], name="FAIL")
    once = binarize_target(y, [1])
    twice = binarize_target(once, [1])

    pd.testing.assert_series_equal(once, twice)
    assert once.iloc[:5].astype(int).tolist() == [1, 0, 0, 0, 1]
    assert pd.isna(once.iloc[5])


def test_binarize_target_with_several_positive_categories():
    y = pd.Series(["fail", "pass", "poor", "good"])
    assert binarize_target(y, ["fail", "poor"]).astype(int).tolist() == [1, 0, 1, 0]


def test_cleaner_rejects_missing_target_column(survey):
    df = survey().drop(columns=["FAIL"])
    with pytest.raises(DataShapeError) as err:
        _cleaner().transform(df)
    assert err.value.stage == "Cleaner"


def test_cleaner_rejects_entirely_missing_target(survey):
    df = survey()
    df["FAIL"] = np.nan
    with pytest.raises(DataShapeError, match="entirely missing"):
        _cleaner().transform(df)


def test_cleaner_rejects_single_class_target(survey):
    df = survey()
    df["FAIL"] = 3.0
    with pytest.raises(DataShapeError, match="single class"):
        _cleaner().transform(df)


def test_unknown_missing_policy():
    with pytest.raises(ValueError):
        _cleaner(missing_policy="half")


def test_missing_report_sorted_descending(survey):
    report = missing_report(survey(missing_cols=2, missing_rate=0.1))
    assert report["missing_fraction"].is_monotonic_decreasing
    assert report.loc[0, "missing_fraction"] == pytest.approx(0.1)
