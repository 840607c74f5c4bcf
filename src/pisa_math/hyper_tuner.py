from dataclasses import dataclass
from math import prod
from typing import Any

import numpy as np
import optuna
import pandas as pd

from .errors import FittingError
from .model_trainer import ModelTrainer
from .utils.logger import get_logger
from .utils.random import derive_seed


@dataclass
class TuningResult:
    best_params: dict[str, Any]
    best_score: float
    trials: pd.DataFrame


class HyperTuner:
    """Exhaustive grid search over a family's grid, scored by ModelTrainer CV AUC."""

    def __init__(self, rng: np.random.Generator):
        self.sampler_seed = derive_seed(rng)
        self.logger = get_logger(self.__class__.__name__)

    @staticmethod
    def _as_choice(value: Any) -> Any:
        # optuna categorical choices must be plain python scalars
        if isinstance(value, np.generic):
            return value.item()
        return value

    def tune(
        self,
        trainer: ModelTrainer,
        X_df: pd.DataFrame,
        y: np.ndarray,
        grid: dict[str, list],
    ) -> TuningResult:
        """
        Run every grid point through ``trainer.cross_validate`` and return the
        best one. Grid points whose CV fails are recorded as failed trials.
        """
        grid = trainer.spec.prune_grid(grid, n_features=X_df.shape[1])
        search_space = {
            k: [self._as_choice(v) for v in vals] for k, vals in grid.items() if vals
        }
        y = np.asarray(y).astype(int)

        if not search_space:
            cv = trainer.cross_validate(X_df, y, params={})
            self.logger.info(f"{trainer.name}: no grid, CV ROC-AUC {cv.mean_score:.4f}")
            trials = pd.DataFrame([{"value": cv.mean_score, "state": "COMPLETE"}])
            return TuningResult(best_params={}, best_score=cv.mean_score, trials=trials)

        n_trials = prod(len(v) for v in search_space.values())
        n_splits = trainer.resolve_splits(y)
        self.logger.info(
            f"{trainer.name}: grid search over {n_trials} point(s) "
            f"({n_splits}-fold CV, ROC-AUC)"
        )

        optuna.logging.set_verbosity(optuna.logging.WARNING)
        sampler = optuna.samplers.GridSampler(search_space, seed=self.sampler_seed)
        study = optuna.create_study(direction="maximize", sampler=sampler)

        def objective(trial: optuna.Trial) -> float:
            params = {
                name: trial.suggest_categorical(name, choices)
                for name, choices in search_space.items()
            }
            cv = trainer.cross_validate(X_df, y, params=params, log_folds=False)
            trial.set_user_attr("n_failed_folds", len(cv.failures))
            return cv.mean_score

        # under the raise policy a failed fold stops the search instead of failing one trial
        catch = () if trainer.fold_failure_policy == "raise" else (FittingError,)
        study.optimize(objective, n_trials=n_trials, catch=catch)

        trials = study.trials_dataframe(attrs=("number", "value", "params", "state", "user_attrs"))
        complete = [t for t in study.trials if t.state == optuna.trial.TrialState.COMPLETE]
        if not complete:
            raise FittingError("HyperTuner", f"{trainer.name}: every grid point failed")

        best = study.best_trial
        self.logger.info(f"{trainer.name}: best CV ROC-AUC {best.value:.4f} with {best.params}")
        return TuningResult(best_params=dict(best.params), best_score=float(best.value), trials=trials)
