import numpy as np
import pandas as pd
import pytest


def _survey(
    n_rows: int = 1000,
    n_items: int = 10,
    missing_cols: int = 3,
    missing_rate: float = 0.02,
    target_missing: int = 15,
    seed: int = 0,
) -> pd.DataFrame:
    """Questionnaire-like table: items coded 1..4, target item coded 1..4 (1 = failing)."""
    rng = np.random.default_rng(seed)
    df = pd.DataFrame(
        {f"ST{i:02d}Q01": rng.integers(1, 5, n_rows).astype(float) for i in range(n_items)}
    )
    n_missing = int(round(missing_rate * n_rows))
    for col in df.columns[:missing_cols]:
        df.loc[rng.choice(n_rows, n_missing, replace=False), col] = np.nan

    target = rng.integers(1, 5, n_rows).astype(float)
    target[rng.choice(n_rows, target_missing, replace=False)] = np.nan
    df["FAIL"] = target
    return df


def _labelled(n_rows: int = 300, n_noise: int = 4, flip: float = 0.0, balanced: bool = False, seed: int = 0):
    """Cleaned-style table: categorical SIGNAL tracking the 0/1 target plus noise items."""
    rng = np.random.default_rng(seed)
    if balanced:
        y = np.repeat([0, 1], n_rows // 2)
        rng.shuffle(y)
    else:
        y = (rng.random(n_rows) < 0.3).astype(int)
    signal = np.where(rng.random(n_rows) < flip, 1 - y, y)
    X = pd.DataFrame({"SIGNAL": signal})
    for i in range(n_noise):
        X[f"NOISE{i}"] = rng.integers(1, 5, n_rows)
    return X.astype("category"), y


@pytest.fixture
def survey():
    return _survey


@pytest.fixture
def labelled():
    return _labelled
