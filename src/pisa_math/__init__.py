"""
PISA 2000 Math Failure - Classification Pipeline

This package loads the PISA 2000 math student questionnaire, keeps the
Canadian subset, cleans it, shortlists predictors with Boruta and compares
four classifiers (logistic regression, random forest, lasso and elastic-net
logistic regression), each with and without in-fold SMOTE oversampling,
for predicting whether a student fails math class.

Modules:
    config              - Load YAML configuration safely.
    data_loader         - Read the survey CSV, filter country and item columns.
    cleaner             - Column schema, missing category, target binarization.
    splitter            - Seeded train/test partition.
    feature_selector    - Boruta selection with a rough fix for tentatives.
    preprocessor        - One-hot or ordinal encoding of questionnaire items.
    models              - Model families and the fitted-model wrapper.
    model_trainer       - Stratified CV with in-fold SMOTE and fold policies.
    hyper_tuner         - Grid search with Optuna.
    evaluator           - Confusion matrix and derived metrics.
    reporter            - Human-readable summaries.
    pipeline            - Orchestrates all components.
    utils.logger        - Unified timestamped console logger.
"""

from .config import Config
from .data_loader import DataLoader
from .cleaner import Cleaner, binarize_target
from .splitter import Splitter
from .feature_selector import FeatureSelector
from .preprocessor import Preprocessor
from .models import FittedModel, ModelFamily
from .model_trainer import ModelTrainer
from .hyper_tuner import HyperTuner
from .evaluator import Evaluator
from .reporter import Reporter
from .pipeline import PipelineRunner

__all__ = [
    "Config",
    "DataLoader",
    "Cleaner",
    "binarize_target",
    "Splitter",
    "FeatureSelector",
    "Preprocessor",
    "FittedModel",
    "ModelFamily",
    "ModelTrainer",
    "HyperTuner",
    "Evaluator",
    "Reporter",
    "PipelineRunner",
]
