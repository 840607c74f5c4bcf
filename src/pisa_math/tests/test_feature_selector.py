import numpy as np

from pisa_math.feature_selector import FeatureSelector
from pisa_math.utils.random import make_rng


def _selector(seed=0, **kwargs):
    kwargs.setdefault("max_iter", 30)
    kwargs.setdefault("rough_fix_rounds", 5)
    kwargs.setdefault("n_jobs", 1)
    return FeatureSelector(make_rng(seed), **kwargs)


def test_boruta_keeps_the_informative_item(labelled):
    X, y = labelled(n_rows=300, n_noise=4, flip=0.05)
    selection = _selector().select(X, y)

    assert "SIGNAL" in selection.selected
    assert set(selection.selected) <= set(X.columns)


def test_every_feature_gets_exactly_one_decision(labelled):
    X, y = labelled(n_rows=300, n_noise=4, flip=0.05)
    selection = _selector().select(X, y)

    buckets = selection.confirmed + selection.tentative + selection.rejected
    assert sorted(buckets) == sorted(X.columns)
    assert set(selection.resolved) == set(selection.tentative)
    assert list(selection.table.columns) == ["feature", "decision", "ranking"]
    assert len(selection.table) == X.shape[1]


def test_rejected_features_are_not_selected(labelled):
    X, y = labelled(n_rows=300, n_noise=4, flip=0.05)
    selection = _selector().select(X, y)
    assert not set(selection.rejected) & set(selection.selected)


def test_rough_fix_confirms_a_strong_tentative(labelled):
    X, y = labelled(n_rows=300, n_noise=3, flip=0.05)
    selector = _selector()
    encoded = selector._encode(X)

    fixed = selector._rough_fix(encoded, np.asarray(y), tentative_idx=[0])
    assert fixed == {0: True}


def test_selection_is_reproducible(labelled):
    X, y = labelled(n_rows=200, n_noise=3, flip=0.1)
    first = _selector(seed=11).select(X, y)
    second = _selector(seed=11).select(X, y)
    assert first.selected == second.selected
