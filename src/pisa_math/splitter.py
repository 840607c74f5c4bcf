from typing import Tuple

import numpy as np
import pandas as pd

from .errors import DataShapeError
from .utils.logger import get_logger


class Splitter:
    """Random train/test partition driven by an explicit generator handle."""

    def __init__(self, ratio: float, rng: np.random.Generator):
        if not 0.0 < ratio < 1.0:
            raise ValueError(f"Split ratio must be in (0, 1), got {ratio}")
        self.ratio = ratio
        self.rng = rng
        self.logger = get_logger(self.__class__.__name__)

    def train_size(self, n_rows: int) -> int:
        return int(round(self.ratio * n_rows))

    def split(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """
        Sample ``round(ratio * n)`` rows without replacement for training,
        the rest for testing. Row order inside each part follows the input.
        """
        n = len(df)
        n_train = self.train_size(n)
        if n_train == 0 or n_train == n:
            raise DataShapeError(
                "Splitter",
                f"ratio {self.ratio} on {n} rows gives an empty partition "
                f"(train={n_train}, test={n - n_train})",
            )

        order = self.rng.permutation(n)
        is_train = np.zeros(n, dtype=bool)
        is_train[order[:n_train]] = True

        train, test = df.iloc[is_train], df.iloc[~is_train]
        self.logger.info(f"Split {n:,} rows: train={len(train):,}, test={len(test):,}")
        return train, test
