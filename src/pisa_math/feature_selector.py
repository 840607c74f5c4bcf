from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import pandas as pd
from boruta import BorutaPy
from sklearn.ensemble import RandomForestClassifier

from .preprocessor import Preprocessor
from .utils.logger import get_logger
from .utils.random import derive_seed


@dataclass
class FeatureSelection:
    confirmed: list[str]
    tentative: list[str]
    rejected: list[str]
    resolved: dict[str, str] = field(default_factory=dict)
    selected: list[str] = field(default_factory=list)
    table: Optional[pd.DataFrame] = field(default=None, repr=False)


class FeatureSelector:
    """
    Boruta all-relevant feature selection on the training split.

    Every feature ends up confirmed, tentative or rejected. Tentative
    features are then settled by a rough-fix pass: repeated forests with
    permuted shadow columns, confirming a feature when its median importance
    beats the median of the best shadow importance per round.
    """

    def __init__(
        self,
        rng: np.random.Generator,
        max_iter: int = 100,
        alpha: float = 0.05,
        perc: int = 100,
        max_depth: Optional[int] = 5,
        rough_fix_rounds: int = 20,
        rough_fix_trees: int = 200,
        n_jobs: int = -1,
    ):
        self.seed = derive_seed(rng)
        self.max_iter = max_iter
        self.alpha = alpha
        self.perc = perc
        self.max_depth = max_depth
        self.rough_fix_rounds = rough_fix_rounds
        self.rough_fix_trees = rough_fix_trees
        self.n_jobs = n_jobs
        self.logger = get_logger(self.__class__.__name__)

    def _forest(self, random_state: int, n_estimators: int = 100) -> RandomForestClassifier:
        return RandomForestClassifier(
            n_estimators=n_estimators,
            max_depth=self.max_depth,
            class_weight="balanced",
            n_jobs=self.n_jobs,
            random_state=random_state,
        )

    def _encode(self, X_df: pd.DataFrame) -> np.ndarray:
        # one column per questionnaire item, so decisions map back to item names
        transformer = Preprocessor(encoding="ordinal").build(X_df)
        X = transformer.fit_transform(X_df)
        names = list(transformer.get_feature_names_out())
        order = [names.index(c) for c in X_df.columns]
        return np.asarray(X, dtype=float)[:, order]

    def _rough_fix(self, X: np.ndarray, y: np.ndarray, tentative_idx: list[int]) -> dict[int, bool]:
        rng = np.random.default_rng(self.seed)
        n_features = X.shape[1]
        real_hist, shadow_max = [], []

        for _ in range(self.rough_fix_rounds):
            shadow = rng.permuted(X, axis=0)
            forest = self._forest(derive_seed(rng), n_estimators=self.rough_fix_trees)
            forest.fit(np.hstack([X, shadow]), y)
            imp = forest.feature_importances_
            real_hist.append(imp[:n_features])
            shadow_max.append(imp[n_features:].max())

        real_median = np.median(np.vstack(real_hist), axis=0)
        shadow_median = float(np.median(shadow_max))
        return {j: bool(real_median[j] > shadow_median) for j in tentative_idx}

    def select(self, X_df: pd.DataFrame, y: np.ndarray) -> FeatureSelection:
        """Return the features Boruta does not reject (tentatives settled by rough fix)."""
        y = np.asarray(y).astype(int)
        columns = list(X_df.columns)
        X = self._encode(X_df)

        boruta = BorutaPy(
            self._forest(self.seed),
            n_estimators="auto",
            perc=self.perc,
            alpha=self.alpha,
            max_iter=self.max_iter,
            random_state=self.seed,
            verbose=0,
        )
        boruta.fit(X, y)

        support = np.asarray(boruta.support_, dtype=bool)
        weak = np.asarray(boruta.support_weak_, dtype=bool) & ~support
        confirmed = [c for c, s in zip(columns, support) if s]
        tentative = [c for c, w in zip(columns, weak) if w]
        rejected = [c for c, s, w in zip(columns, support, weak) if not s and not w]

        decisions = {c: "confirmed" for c in confirmed}
        decisions.update({c: "rejected" for c in rejected})
        resolved: dict[str, str] = {}
        if tentative:
            idx = [columns.index(c) for c in tentative]
            fixed = self._rough_fix(X, y, idx)
            for j, keep in fixed.items():
                resolved[columns[j]] = "confirmed" if keep else "rejected"
            decisions.update({c: f"tentative -> {d}" for c, d in resolved.items()})

        selected = confirmed + [c for c in tentative if resolved.get(c) == "confirmed"]
        selected = [c for c in columns if c in set(selected)]
        if not selected:
            self.logger.warning("Boruta kept no features; falling back to the full predictor set")
            selected = columns

        table = pd.DataFrame(
            {
                "feature": columns,
                "decision": [decisions[c] for c in columns],
                "ranking": np.asarray(boruta.ranking_, dtype=int),
            }
        ).sort_values(["ranking", "feature"]).reset_index(drop=True)

        self.logger.info(
            f"Boruta: {len(confirmed)} confirmed, {len(tentative)} tentative, "
            f"{len(rejected)} rejected -> {len(selected)} selected"
        )
        return FeatureSelection(
            confirmed=confirmed,
            tentative=tentative,
            rejected=rejected,
            resolved=resolved,
            selected=selected,
            table=table,
        )
