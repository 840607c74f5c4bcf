import warnings
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
import pandas as pd
from imblearn.over_sampling import SMOTE, SMOTEN, SMOTENC
from imblearn.over_sampling.base import BaseOverSampler
from imblearn.pipeline import Pipeline as ImbPipeline
from pandas.api.types import is_numeric_dtype
from sklearn.exceptions import ConvergenceWarning
from sklearn.metrics import roc_auc_score
from sklearn.model_selection import StratifiedKFold

from .errors import FittingError
from .models import FittedModel, ModelFamily, get_spec
from .preprocessor import Preprocessor
from .utils.logger import get_logger
from .utils.random import derive_seed

FOLD_POLICIES = ("skip", "penalize", "raise")


class _FoldFailed(Exception):
    """A single fold could not be fitted or scored."""


@dataclass
class CVResult:
    mean_score: float
    fold_scores: list[float]
    n_splits: int
    failures: dict[int, str] = field(default_factory=dict)
    oof_proba: Optional[np.ndarray] = field(default=None, repr=False)


class ModelTrainer:
    """
    Fits one model family with leakage-safe stratified cross-validation:
    preprocessing and SMOTE are fit only on each fold's training partition,
    then the fold is scored by ROC AUC on its untouched validation part.

    Provides:
      - cross_validate: mean CV AUC, per-fold scores and fold failures
      - fit_final: trains the model on the whole training split
    """

    def __init__(
        self,
        family: ModelFamily | str,
        rng: np.random.Generator,
        base_params: Optional[dict[str, Any]] = None,
        oversample: bool = False,
        n_splits: int = 5,
        fold_failure_policy: str = "skip",
        penalty_score: float = 0.5,
        adapt_folds: bool = True,
        smote_k_neighbors: int = 5,
        convergence_as_failure: bool = False,
    ):
        if fold_failure_policy not in FOLD_POLICIES:
            raise ValueError(
                f"Unknown fold_failure_policy '{fold_failure_policy}', expected one of {FOLD_POLICIES}"
            )
        self.spec = get_spec(family)
        self.family = self.spec.family
        self.base_params = dict(base_params or {})
        self.oversample = oversample
        self.n_splits = n_splits
        self.fold_failure_policy = fold_failure_policy
        self.penalty_score = penalty_score
        self.adapt_folds = adapt_folds
        self.smote_k_neighbors = smote_k_neighbors
        self.convergence_as_failure = convergence_as_failure

        # drawn once so every grid point sees the same folds and model seed
        self.cv_seed = derive_seed(rng)
        self.model_seed = derive_seed(rng)

        self.logger = get_logger(self.__class__.__name__)

    @property
    def name(self) -> str:
        return f"{self.family.value}{'+smote' if self.oversample else ''}"

    def _make_sampler(self, X_train_df: pd.DataFrame, y_train: np.ndarray) -> BaseOverSampler:
        """SMOTE for numeric items, SMOTEN for categorical ones, SMOTENC for a mix."""
        minority = int(np.bincount(y_train, minlength=2).min())
        if minority < 2:
            raise _FoldFailed(f"{minority} minority example(s), cannot oversample")
        k = min(self.smote_k_neighbors, minority - 1)

        categorical = [
            i for i, dtype in enumerate(X_train_df.dtypes) if not is_numeric_dtype(dtype)
        ]
        if not categorical:
            return SMOTE(k_neighbors=k, random_state=self.model_seed)
        if len(categorical) == X_train_df.shape[1]:
            # synthetic rows only take categories observed among the neighbours
            return SMOTEN(k_neighbors=k, random_state=self.model_seed)
        return SMOTENC(categorical_features=categorical, k_neighbors=k, random_state=self.model_seed)

    def build_pipeline(
        self, X_train_df: pd.DataFrame, y_train: np.ndarray, params: dict[str, Any]
    ) -> ImbPipeline:
        """(SMOTE) -> preprocessor -> classifier; the sampler only runs during fit.

        The sampler sees the cleaned item table, before encoding, so it can
        treat categorical items as categories.
        """
        merged = dict(self.base_params)
        merged.update(params)

        steps = []
        if self.oversample:
            steps.append(("smote", self._make_sampler(X_train_df, y_train)))
        steps.append(("prep", Preprocessor(encoding=self.spec.encoding).build(X_train_df)))
        steps.append(("clf", self.spec.build(merged, random_state=self.model_seed)))
        return ImbPipeline(steps)

    def _fit(self, pipe: ImbPipeline, X: pd.DataFrame, y: np.ndarray) -> None:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", ConvergenceWarning)
            try:
                pipe.fit(X, y)
            except (ValueError, np.linalg.LinAlgError) as exc:
                raise _FoldFailed(f"fit failed: {exc}") from exc

        n_conv = sum(issubclass(w.category, ConvergenceWarning) for w in caught)
        if n_conv:
            if self.convergence_as_failure:
                raise _FoldFailed("solver did not converge")
            self.logger.debug(f"{self.name}: {n_conv} convergence warning(s)")

    def resolve_splits(self, y: np.ndarray) -> int:
        minority = int(np.bincount(y, minlength=2).min())
        if minority >= self.n_splits:
            return self.n_splits
        if not self.adapt_folds or minority < 2:
            raise FittingError(
                "ModelTrainer",
                f"{self.name}: minority class has {minority} example(s), "
                f"too few for {self.n_splits}-fold stratified CV",
            )
        self.logger.warning(
            f"{self.name}: minority class has {minority} examples; using {minority} folds "
            f"instead of {self.n_splits}"
        )
        return minority

    def _fit_score_fold(
        self,
        X_train_df: pd.DataFrame,
        y_train: np.ndarray,
        X_val_df: pd.DataFrame,
        y_val: np.ndarray,
        params: dict[str, Any],
    ) -> tuple[float, np.ndarray]:
        if len(np.unique(y_train)) < 2:
            raise _FoldFailed("training partition has a single class")
        if len(np.unique(y_val)) < 2:
            raise _FoldFailed("validation fold has a single class")

        pipe = self.build_pipeline(X_train_df, y_train, params)
        self._fit(pipe, X_train_df, y_train)
        val_proba = pipe.predict_proba(X_val_df)[:, 1]
        return float(roc_auc_score(y_val, val_proba)), val_proba

    def cross_validate(
        self,
        X_df: pd.DataFrame,
        y: np.ndarray,
        params: Optional[dict[str, Any]] = None,
        log_folds: bool = True,
    ) -> CVResult:
        """
        Stratified CV with fold-wise preprocessing and oversampling.

        Failed folds are skipped, penalized or raised according to
        ``fold_failure_policy``; if every fold fails a FittingError is raised.
        """
        params = dict(params or {})
        y = np.asarray(y).astype(int)
        n_splits = self.resolve_splits(y)

        oof_proba = np.full(len(y), np.nan, dtype=float)
        fold_scores: list[float] = []
        failures: dict[int, str] = {}

        skf = StratifiedKFold(n_splits=n_splits, shuffle=True, random_state=self.cv_seed)

        for fold, (train_idx, val_idx) in enumerate(skf.split(X_df, y), start=1):
            X_train_df = X_df.iloc[train_idx]
            X_val_df = X_df.iloc[val_idx]
            try:
                auc, val_proba = self._fit_score_fold(
                    X_train_df, y[train_idx], X_val_df, y[val_idx], params
                )
            except _FoldFailed as exc:
                if self.fold_failure_policy == "raise":
                    raise FittingError(
                        "ModelTrainer", f"{self.name} fold {fold}/{n_splits}: {exc}"
                    ) from exc
                failures[fold] = str(exc)
                self.logger.warning(
                    f"{self.name} fold {fold}/{n_splits} failed ({exc}); "
                    f"policy={self.fold_failure_policy}"
                )
                if self.fold_failure_policy == "penalize":
                    fold_scores.append(float(self.penalty_score))
                continue

            oof_proba[val_idx] = val_proba
            fold_scores.append(auc)
            if log_folds:
                self.logger.info(f"{self.name} fold {fold}/{n_splits} ROC-AUC: {auc:.4f}")

        if len(failures) == n_splits:
            raise FittingError(
                "ModelTrainer", f"{self.name}: all {n_splits} folds failed: {failures}"
            )

        return CVResult(
            mean_score=float(np.mean(fold_scores)),
            fold_scores=fold_scores,
            n_splits=n_splits,
            failures=failures,
            oof_proba=oof_proba,
        )

    def fit_final(
        self,
        X_df: pd.DataFrame,
        y: np.ndarray,
        params: Optional[dict[str, Any]] = None,
        cv_score: float = float("nan"),
        trials: Optional[pd.DataFrame] = None,
    ) -> FittedModel:
        """Fit preprocessing (+ SMOTE) + model on the whole training split."""
        params = dict(params or {})
        y = np.asarray(y).astype(int)
        try:
            pipe = self.build_pipeline(X_df, y, params)
            self._fit(pipe, X_df, y)
        except _FoldFailed as exc:
            raise FittingError("ModelTrainer", f"{self.name} final fit: {exc}") from exc

        self.logger.info(f"Fitted final {self.name} on {len(y):,} rows with params {params}")
        return FittedModel(
            family=self.family,
            oversampled=self.oversample,
            params={**self.base_params, **params},
            cv_score=cv_score,
            features=list(X_df.columns),
            pipeline=pipe,
            trials=trials,
            tuned_params=params,
        )
