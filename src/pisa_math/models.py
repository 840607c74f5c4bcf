"""
Closed set of model families and the fitted-model wrapper.

Each family is described by a :class:`ModelSpec` (how to build the
estimator, which categorical encoding it wants, default hyperparameters).
Fitting goes through :class:`pisa_math.model_trainer.ModelTrainer`, which
returns a :class:`FittedModel` with a uniform ``predict`` interface.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import pandas as pd
from imblearn.pipeline import Pipeline as ImbPipeline
from sklearn.base import BaseEstimator
from sklearn.ensemble import RandomForestClassifier
from sklearn.linear_model import LogisticRegression


class ModelFamily(str, Enum):
    LOGISTIC_REGRESSION = "logistic_regression"
    RANDOM_FOREST = "random_forest"
    LASSO_LOGISTIC = "lasso_logistic"
    ELASTIC_NET_LOGISTIC = "elastic_net_logistic"


@dataclass(frozen=True)
class ModelSpec:
    family: ModelFamily
    label: str
    encoding: str
    defaults: Dict[str, Any]
    factory: Callable[..., BaseEstimator]

    def build(self, params: Dict[str, Any], random_state: int) -> BaseEstimator:
        kwargs = dict(self.defaults)
        kwargs.update(params)
        return self.factory(random_state=random_state, **kwargs)

    def prune_grid(self, grid: Dict[str, list], n_features: int) -> Dict[str, list]:
        """Drop grid values that cannot apply to ``n_features`` predictors."""
        if self.family is not ModelFamily.RANDOM_FOREST or "max_features" not in grid:
            return grid
        values = [
            v for v in grid["max_features"]
            if not (isinstance(v, int) and not isinstance(v, bool) and v > n_features)
        ]
        return {**grid, "max_features": values or [n_features]}


MODEL_SPECS: Dict[ModelFamily, ModelSpec] = {
    ModelFamily.LOGISTIC_REGRESSION: ModelSpec(
        family=ModelFamily.LOGISTIC_REGRESSION,
        label="Logistic regression",
        encoding="onehot",
        defaults={"penalty": None, "solver": "lbfgs", "max_iter": 5000},
        factory=LogisticRegression,
    ),
    ModelFamily.RANDOM_FOREST: ModelSpec(
        family=ModelFamily.RANDOM_FOREST,
        label="Random forest",
        encoding="ordinal",
        defaults={"n_estimators": 500, "n_jobs": -1},
        factory=RandomForestClassifier,
    ),
    ModelFamily.LASSO_LOGISTIC: ModelSpec(
        family=ModelFamily.LASSO_LOGISTIC,
        label="Lasso logistic",
        encoding="onehot",
        defaults={"penalty": "elasticnet", "solver": "saga", "l1_ratio": 1.0, "max_iter": 5000},
        factory=LogisticRegression,
    ),
    ModelFamily.ELASTIC_NET_LOGISTIC: ModelSpec(
        family=ModelFamily.ELASTIC_NET_LOGISTIC,
        label="Elastic-net logistic",
        encoding="onehot",
        defaults={"penalty": "elasticnet", "solver": "saga", "l1_ratio": 0.5, "max_iter": 5000},
        factory=LogisticRegression,
    ),
}


def get_spec(family: ModelFamily | str) -> ModelSpec:
    return MODEL_SPECS[ModelFamily(family)]


@dataclass
class FittedModel:
    """A trained (family, sampling variant) pair, consumed by the Evaluator."""
    family: ModelFamily
    oversampled: bool
    params: Dict[str, Any]
    cv_score: float
    features: List[str]
    pipeline: ImbPipeline
    trials: Optional[pd.DataFrame] = field(default=None, repr=False)
    tuned_params: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return f"{self.family.value}{'+smote' if self.oversampled else ''}"

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        return np.asarray(self.pipeline.predict(X[self.features])).astype(int)

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        return self.pipeline.predict_proba(X[self.features])[:, 1]

    def _encoded_names(self) -> np.ndarray:
        return np.asarray(self.pipeline.named_steps["prep"].get_feature_names_out())

    def coefficients(self, drop_zero: bool = True) -> Optional[pd.DataFrame]:
        """Coefficient table for the logistic families, largest magnitude first."""
        clf = self.pipeline.named_steps["clf"]
        if not hasattr(clf, "coef_"):
            return None
        table = pd.DataFrame({"feature": self._encoded_names(), "coefficient": clf.coef_[0]})
        if drop_zero:
            table = table.loc[table["coefficient"] != 0]
        order = table["coefficient"].abs().sort_values(ascending=False).index
        return table.loc[order].reset_index(drop=True)

    def importances(self) -> Optional[pd.DataFrame]:
        """Impurity importances for the random forest."""
        clf = self.pipeline.named_steps["clf"]
        if not hasattr(clf, "feature_importances_"):
            return None
        table = pd.DataFrame(
            {"feature": self._encoded_names(), "importance": clf.feature_importances_}
        )
        return table.sort_values("importance", ascending=False).reset_index(drop=True)
