from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from .errors import DataShapeError
from .utils.logger import get_logger

TARGET_DTYPE = pd.CategoricalDtype([0, 1])
MISSING_POLICIES = ("all_missing", "threshold")


class ColumnKind(str, Enum):
    CATEGORICAL = "categorical"
    NUMERIC = "numeric"
    EXCLUDED = "excluded"


@dataclass(frozen=True)
class ColumnRule:
    """How one column is treated by :meth:`Cleaner.transform`."""
    kind: ColumnKind
    sentinel: Any = None
    fill_value: Any = None
    reason: str = ""


Schema = Dict[str, ColumnRule]


@dataclass
class CleaningSummary:
    rows_in: int
    rows_out: int
    dropped_columns: Dict[str, str] = field(default_factory=dict)
    kept_above_threshold: List[str] = field(default_factory=list)
    positive_rate: float = float("nan")


def binarize_target(y: pd.Series, positive_values: Iterable[Any]) -> pd.Series:
    """
    Map the positive response categories to 1 and every other observed value to 0.

    Missing responses stay missing. The result has dtype ``TARGET_DTYPE``;
    a series that already carries that dtype is returned unchanged, so the
    remap is idempotent.
    """
    if isinstance(y.dtype, pd.CategoricalDtype) and y.dtype == TARGET_DTYPE:
        return y.copy()

    codes = np.where(y.isin(list(positive_values)), 1, 0)
    codes[y.isna().to_numpy()] = -1
    return pd.Series(
        pd.Categorical.from_codes(codes, dtype=TARGET_DTYPE),
        index=y.index,
        name=y.name,
    )


def missing_report(df: pd.DataFrame) -> pd.DataFrame:
    """Per-column missing fraction, sorted descending."""
    frac = df.isna().mean()
    return (
        pd.DataFrame({"column": frac.index, "missing_fraction": frac.to_numpy()})
        .sort_values("missing_fraction", ascending=False, kind="stable")
        .reset_index(drop=True)
    )


def _is_numeric(series: pd.Series) -> bool:
    if isinstance(series.dtype, pd.CategoricalDtype):
        return pd.api.types.is_numeric_dtype(series.cat.categories.dtype)
    return pd.api.types.is_numeric_dtype(series)


def _pick_sentinel(series: pd.Series, sentinel: Any) -> Any:
    """Return a sentinel value not already observed in ``series``."""
    observed = np.asarray(series.dropna().unique())
    if _is_numeric(series):
        if sentinel not in set(observed.tolist()):
            return sentinel
        return observed.max() + 1
    candidate = str(sentinel)
    seen = {str(v) for v in observed}
    while candidate in seen:
        candidate = f"{candidate}_missing"
    return candidate


def _to_categorical(series: pd.Series, rule: ColumnRule) -> pd.Series:
    if isinstance(series.dtype, pd.CategoricalDtype):
        if rule.sentinel not in series.cat.categories:
            series = series.cat.add_categories([rule.sentinel])
        return series.fillna(rule.sentinel)
    return series.fillna(rule.sentinel).astype("category")


def _to_numeric(series: pd.Series, rule: ColumnRule) -> pd.Series:
    return pd.to_numeric(series, errors="coerce").fillna(rule.fill_value)


_TRANSFORMS: Dict[ColumnKind, Callable[[pd.Series, ColumnRule], pd.Series]] = {
    ColumnKind.CATEGORICAL: _to_categorical,
    ColumnKind.NUMERIC: _to_numeric,
}


class Cleaner:
    """Drops unusable columns, imputes a missing category and binarizes the target."""

    def __init__(
        self,
        target_col: str,
        positive_values: Iterable[Any],
        exclude_cols: Iterable[str] = (),
        numeric_cols: Iterable[str] = (),
        missing_policy: str = "all_missing",
        max_missing_fraction: float = 0.05,
        sentinel: Any = 0,
    ):
        """
        Parameters
        ----------
        target_col:
            Name of the response column.
        positive_values:
            Raw target categories that mean "failing"; they become 1.
        exclude_cols:
            Columns dropped by hand (administrative or irrelevant items).
        numeric_cols:
            Columns kept numeric (median-imputed) instead of categorical.
        missing_policy:
            ``all_missing`` drops only fully missing columns and warns about
            columns above ``max_missing_fraction``; ``threshold`` also drops
            those columns.
        sentinel:
            Category used for missing cells in categorical columns.
        """
        if missing_policy not in MISSING_POLICIES:
            raise ValueError(
                f"Unknown missing_policy '{missing_policy}', expected one of {MISSING_POLICIES}"
            )
        self.target_col = target_col
        self.positive_values = list(positive_values)
        self.exclude_cols = set(exclude_cols)
        self.numeric_cols = set(numeric_cols)
        self.missing_policy = missing_policy
        self.max_missing_fraction = max_missing_fraction
        self.sentinel = sentinel
        self.logger = get_logger(self.__class__.__name__)
        self.schema_: Optional[Schema] = None
        self.summary_: Optional[CleaningSummary] = None

    def _check_target(self, df: pd.DataFrame) -> None:
        if self.target_col not in df.columns:
            raise DataShapeError("Cleaner", f"target column '{self.target_col}' not found")
        if df[self.target_col].isna().all():
            raise DataShapeError("Cleaner", f"target column '{self.target_col}' is entirely missing")

    def infer_schema(self, df: pd.DataFrame) -> Schema:
        """Decide, per predictor column, whether it is categorical, numeric or excluded."""
        self._check_target(df)
        frac = df.isna().mean()
        schema: Schema = {}

        for col in df.columns:
            if col == self.target_col:
                continue
            if frac[col] >= 1.0:
                schema[col] = ColumnRule(ColumnKind.EXCLUDED, reason="all missing")
            elif col in self.exclude_cols:
                schema[col] = ColumnRule(ColumnKind.EXCLUDED, reason="manual exclusion")
            elif self.missing_policy == "threshold" and frac[col] > self.max_missing_fraction:
                schema[col] = ColumnRule(
                    ColumnKind.EXCLUDED,
                    reason=f"missing {frac[col]:.1%} > {self.max_missing_fraction:.1%}",
                )
            elif col in self.numeric_cols:
                median = pd.to_numeric(df[col], errors="coerce").median()
                schema[col] = ColumnRule(ColumnKind.NUMERIC, fill_value=median)
            else:
                schema[col] = ColumnRule(
                    ColumnKind.CATEGORICAL, sentinel=_pick_sentinel(df[col], self.sentinel)
                )

        return schema

    def transform(self, df: pd.DataFrame, schema: Optional[Schema] = None) -> pd.DataFrame:
        """Apply the schema and return a new, fully populated table."""
        if schema is None:
            schema = self.infer_schema(df)
        else:
            self._check_target(df)

        dropped = {c: r.reason for c, r in schema.items() if r.kind is ColumnKind.EXCLUDED}
        kept = [c for c, r in schema.items() if r.kind is not ColumnKind.EXCLUDED and c in df.columns]
        if not kept:
            raise DataShapeError("Cleaner", "no predictor columns left after cleaning")

        frac = df[kept].isna().mean()
        above = [c for c in kept if frac[c] > self.max_missing_fraction]
        if above:
            self.logger.warning(
                f"{len(above)} kept column(s) exceed {self.max_missing_fraction:.0%} missing "
                f"under policy '{self.missing_policy}': {above}"
            )

        rows_in = len(df)
        out = df.loc[df[self.target_col].notna(), kept + [self.target_col]].copy()
        if out.empty:
            raise DataShapeError("Cleaner", "no rows left after dropping missing targets")

        for col in kept:
            rule = schema[col]
            apply_rule = _TRANSFORMS[rule.kind]
            if rule.kind is ColumnKind.CATEGORICAL and rule.sentinel is None:
                rule = ColumnRule(rule.kind, sentinel=_pick_sentinel(out[col], self.sentinel))
            out[col] = apply_rule(out[col], rule)

        out[self.target_col] = binarize_target(out[self.target_col], self.positive_values)
        n_classes = out[self.target_col].nunique()
        if n_classes < 2:
            raise DataShapeError(
                "Cleaner", f"target '{self.target_col}' has a single class after binarization"
            )

        self.schema_ = schema
        self.summary_ = CleaningSummary(
            rows_in=rows_in,
            rows_out=len(out),
            dropped_columns=dropped,
            kept_above_threshold=above,
            positive_rate=float(out[self.target_col].astype(int).mean()),
        )
        self.logger.info(
            f"Cleaned table: {len(out):,} rows x {len(kept)} predictors "
            f"({rows_in - len(out):,} rows without target, {len(dropped)} columns dropped)"
        )
        return out
