import warnings
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional

import pandas as pd

from .cleaner import Cleaner
from .config import Config, expand_grid
from .data_loader import DataLoader, country_filter, prefix_filter
from .errors import PipelineError
from .evaluator import EvaluationResult, Evaluator
from .feature_selector import FeatureSelection, FeatureSelector
from .hyper_tuner import HyperTuner
from .model_trainer import ModelTrainer
from .models import FittedModel, ModelFamily
from .reporter import Reporter
from .splitter import Splitter
from .utils.logger import get_logger
from .utils.random import derive_seed, make_rng


@dataclass
class PipelineResult:
    n_clean_rows: int
    n_train: int
    n_test: int
    selection: Optional[FeatureSelection]
    models: list[FittedModel] = field(default_factory=list)
    evaluations: list[EvaluationResult] = field(default_factory=list)
    comparison: Optional[pd.DataFrame] = None


class PipelineRunner:
    """End-to-end PISA 2000 math-failure pipeline.

    Steps:
      1. Load the survey table, keep one country and the item columns
      2. Clean: drop unusable columns, add a missing category, binarize target
      3. Split 70/30 with the seeded generator
      4. Shortlist predictors with Boruta (advisory)
      5. For each model family, with and without in-fold SMOTE:
         grid-search hyperparameters by 5-fold CV AUC, refit on the training split
      6. Evaluate every model on the held-out split
      7. Report confusion matrices, metrics, coefficients and importances"""

    def __init__(self, config: Config | str):
        self.config = Config.from_yaml(config) if isinstance(config, str) else config
        self.logger = get_logger(self.__class__.__name__)
        warnings.filterwarnings("ignore", category=FutureWarning, module="sklearn")

    @contextmanager
    def _stage(self, name: str) -> Iterator[None]:
        self.logger.info(f"Stage {name}: start")
        try:
            yield
        except PipelineError:
            raise
        except Exception as exc:
            raise PipelineError(name, f"{type(exc).__name__}: {exc}") from exc
        self.logger.info(f"Stage {name}: done")

    def _loader(self) -> DataLoader:
        cfg = self.config
        data = cfg.data
        row_filter = None
        if data.get("country"):
            row_filter = country_filter(data.get("country_col", "CNT"), data["country"])
        column_filter = prefix_filter(data["column_prefix"]) if data.get("column_prefix") else None
        return DataLoader(
            path=data["path"],
            row_filter=row_filter,
            column_filter=column_filter,
            keep_columns=[data["target_col"]],
            sample_size=data.get("sample_size"),
            random_state=cfg.seed,
        )

    def _cleaner(self) -> Cleaner:
        cleaning = self.config.cleaning
        return Cleaner(
            target_col=self.config.data["target_col"],
            positive_values=cleaning.get("positive_values", [1]),
            exclude_cols=cleaning.get("exclude_cols") or [],
            numeric_cols=cleaning.get("numeric_cols") or [],
            missing_policy=cleaning.get("missing_policy", "all_missing"),
            max_missing_fraction=cleaning.get("max_missing_fraction", 0.05),
            sentinel=cleaning.get("sentinel", 0),
        )

    def _trainer(self, family: str, family_seed: int, oversample: bool) -> ModelTrainer:
        validation = self.config.validation
        return ModelTrainer(
            family=family,
            # same seed for both sampling variants, so they share folds
            rng=make_rng(family_seed),
            base_params=self.config.family_config(family).get("params"),
            oversample=oversample,
            n_splits=validation.get("n_splits", 5),
            fold_failure_policy=validation.get("fold_failure_policy", "skip"),
            penalty_score=validation.get("penalty_score", 0.5),
            adapt_folds=validation.get("adapt_folds", True),
            smote_k_neighbors=validation.get("smote_k_neighbors", 5),
            convergence_as_failure=validation.get("convergence_as_failure", False),
        )

    def run(self) -> PipelineResult:
        cfg = self.config
        target_col = cfg.data["target_col"]
        rng = make_rng(cfg.seed)
        reporter = Reporter(cfg.output.get("report_path"), top_n=cfg.output.get("top_n", 15))
        self.logger.info(f"Starting PISA math-failure pipeline (seed={cfg.seed})")

        with self._stage("DataLoader"):
            df = self._loader().load()
            self.logger.info(f"Loaded dataset: {df.shape[0]:,} rows x {df.shape[1]} cols")

        with self._stage("Cleaner"):
            cleaner = self._cleaner()
            clean = cleaner.transform(df)
            reporter.cleaning(cleaner.summary_)

        with self._stage("Splitter"):
            train, test = Splitter(cfg.split.get("ratio", 0.7), rng).split(clean)

        X_train = train.drop(columns=[target_col])
        y_train = train[target_col].astype(int).to_numpy()
        X_test = test.drop(columns=[target_col])
        y_test = test[target_col].astype(int).to_numpy()

        selection: Optional[FeatureSelection] = None
        if cfg.selection.get("enabled", True):
            with self._stage("FeatureSelector"):
                selector = FeatureSelector(
                    rng,
                    max_iter=cfg.selection.get("max_iter", 100),
                    alpha=cfg.selection.get("alpha", 0.05),
                    max_depth=cfg.selection.get("max_depth", 5),
                    rough_fix_rounds=cfg.selection.get("rough_fix_rounds", 20),
                )
                selection = selector.select(X_train, y_train)
                reporter.feature_selection(selection)
        else:
            self.logger.info("Feature selection disabled")

        families = cfg.models.get("families") or [f.value for f in ModelFamily]
        variants = cfg.models.get("oversampling_variants", [False, True])
        tuner = HyperTuner(rng)
        models: list[FittedModel] = []

        with self._stage("ModelTrainer"):
            for family in families:
                family_cfg = cfg.family_config(family)
                features = list(X_train.columns)
                if selection is not None and family_cfg.get("use_selected_features", False):
                    features = selection.selected
                grid = expand_grid(family_cfg.get("grid"))
                family_seed = derive_seed(rng)

                for oversample in variants:
                    trainer = self._trainer(family, family_seed, bool(oversample))
                    tuning = tuner.tune(trainer, X_train[features], y_train, grid)
                    models.append(
                        trainer.fit_final(
                            X_train[features],
                            y_train,
                            tuning.best_params,
                            cv_score=tuning.best_score,
                            trials=tuning.trials,
                        )
                    )

        evaluations: list[EvaluationResult] = []
        with self._stage("Evaluator"):
            evaluator = Evaluator(
                positive_label=cfg.evaluation.get("positive_label", 1),
                figures_dir=cfg.output.get("figures_dir"),
            )
            for model in models:
                result = evaluator.evaluate(model, X_test, y_test)
                evaluations.append(result)
                reporter.evaluation(result)
                reporter.model_details(model)

        comparison = reporter.comparison(models, evaluations)
        reporter.write()
        self.logger.info("Pipeline finished")

        return PipelineResult(
            n_clean_rows=len(clean),
            n_train=len(train),
            n_test=len(test),
            selection=selection,
            models=models,
            evaluations=evaluations,
            comparison=comparison,
        )
