from __future__ import annotations

from typing import Optional

import numpy as np
import pandas as pd
from sklearn.compose import ColumnTransformer
from sklearn.impute import SimpleImputer
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder, OrdinalEncoder, StandardScaler

from pisa_math.utils.logger import get_logger

ENCODINGS = ("onehot", "ordinal")


class Preprocessor:
    """Builds a ColumnTransformer for categorical and numeric questionnaire items."""

    def __init__(
        self,
        encoding: str = "onehot",
        impute_strategy: str = "median",
        use_scaler: bool = False,
        verbose: bool = False,
    ):
        """
        Parameters
        ----------
        encoding:
            ``onehot`` for the logistic families, ``ordinal`` for tree models so
            each categorical item stays a single predictor.
        impute_strategy:
            Strategy for numeric imputation (median/mean/most_frequent). The
            Cleaner already fills missing cells; this covers unseen gaps.
        use_scaler:
            Whether to standardise numeric items.
        verbose:
            If True, logs detected feature groups.
        """
        if encoding not in ENCODINGS:
            raise ValueError(f"Unknown encoding '{encoding}', expected one of {ENCODINGS}")
        self.encoding = encoding
        self.impute_strategy = impute_strategy
        self.use_scaler = use_scaler
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)
        self.transformer: Optional[ColumnTransformer] = None

    def _make_encoder(self):
        if self.encoding == "onehot":
            return OneHotEncoder(handle_unknown="ignore", sparse_output=False)
        return OrdinalEncoder(
            handle_unknown="use_encoded_value", unknown_value=-1, dtype=np.float64
        )

    def build(self, X: pd.DataFrame) -> ColumnTransformer:
        """Build (but do not fit) the preprocessing transformer."""
        numeric_cols = X.select_dtypes(include=["number", "bool"]).columns.tolist()
        categorical_cols = X.select_dtypes(include=["object", "category"]).columns.tolist()

        num_steps = [("imputer", SimpleImputer(strategy=self.impute_strategy))]
        if self.use_scaler:
            num_steps.append(("scaler", StandardScaler()))
        num_pipe = Pipeline(steps=num_steps)

        cat_pipe = Pipeline(steps=[("encoder", self._make_encoder())])

        self.transformer = ColumnTransformer(
            transformers=[
                ("num", num_pipe, numeric_cols),
                ("cat", cat_pipe, categorical_cols),
            ],
            remainder="drop",
            verbose_feature_names_out=False,
        )

        if self.verbose:
            self.logger.info(
                f"Columns detected: numeric={len(numeric_cols)}, "
                f"categorical={len(categorical_cols)} ({self.encoding})"
            )

        return self.transformer
