import os
from dataclasses import dataclass
from typing import Dict, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from sklearn.metrics import cohen_kappa_score, confusion_matrix, roc_auc_score

from .errors import EvaluationError
from .models import FittedModel
from .utils.logger import get_logger


@dataclass(frozen=True)
class ConfusionCounts:
    tp: int
    tn: int
    fp: int
    fn: int

    @property
    def total(self) -> int:
        return self.tp + self.tn + self.fp + self.fn

    def as_frame(self) -> pd.DataFrame:
        """2x2 table, rows = actual, columns = predicted (positive first)."""
        return pd.DataFrame(
            [[self.tp, self.fn], [self.fp, self.tn]],
            index=["actual positive", "actual negative"],
            columns=["predicted positive", "predicted negative"],
        )


@dataclass
class EvaluationResult:
    model_name: str
    counts: ConfusionCounts
    metrics: Dict[str, float]


def _ratio(num: float, den: float) -> float:
    return float(num) / den if den else float("nan")


def metrics_from_counts(cm: ConfusionCounts) -> Dict[str, float]:
    """Standard confusion-matrix metrics; undefined ratios are NaN."""
    sensitivity = _ratio(cm.tp, cm.tp + cm.fn)
    specificity = _ratio(cm.tn, cm.tn + cm.fp)
    precision = _ratio(cm.tp, cm.tp + cm.fp)
    return {
        "Accuracy": _ratio(cm.tp + cm.tn, cm.total),
        "Sensitivity": sensitivity,
        "Specificity": specificity,
        "Precision": precision,
        "NPV": _ratio(cm.tn, cm.tn + cm.fn),
        "F1": _ratio(2 * cm.tp, 2 * cm.tp + cm.fp + cm.fn),
        "Balanced_Accuracy": (sensitivity + specificity) / 2,
        "Prevalence": _ratio(cm.tp + cm.fn, cm.total),
    }


class Evaluator:
    """Scores a fitted model on the held-out split: confusion matrix plus derived metrics."""

    def __init__(self, positive_label: int = 1, figures_dir: Optional[str] = None, verbose: bool = True):
        self.positive_label = positive_label
        self.figures_dir = figures_dir
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    def confusion(self, y_true: np.ndarray, y_pred: np.ndarray) -> ConfusionCounts:
        y_true = np.asarray(y_true)
        y_pred = np.asarray(y_pred)
        if y_true.shape != y_pred.shape:
            raise EvaluationError(
                "Evaluator",
                f"prediction shape {y_pred.shape} does not match label shape {y_true.shape}",
            )

        is_pos_true = y_true == self.positive_label
        is_pos_pred = y_pred == self.positive_label
        # labels fixed as [positive, negative] so absent classes still count as zero
        (tp, fn), (fp, tn) = confusion_matrix(is_pos_true, is_pos_pred, labels=[True, False])
        return ConfusionCounts(tp=int(tp), tn=int(tn), fp=int(fp), fn=int(fn))

    def _plot_confusion_matrix(self, counts: ConfusionCounts, name: str) -> str:
        """Plot a row-normalised confusion matrix and save it under figures_dir."""
        cm = counts.as_frame().to_numpy().astype(float)
        row_sums = cm.sum(axis=1, keepdims=True)
        row_sums[row_sums == 0] = 1.0
        cm = cm / row_sums

        plt.figure(figsize=(6, 5))
        sns.heatmap(
            cm,
            annot=True,
            fmt=".2f",
            cmap="Blues",
            xticklabels=["Fail", "Pass"],
            yticklabels=["Fail", "Pass"],
        )
        plt.xlabel("Predicted")
        plt.ylabel("Actual")
        plt.title(f"Confusion Matrix (Normalized): {name}")

        os.makedirs(self.figures_dir, exist_ok=True)
        path = os.path.join(self.figures_dir, f"confusion_matrix_{name.replace('+', '_')}.png")
        plt.tight_layout()
        plt.savefig(path, dpi=200)
        plt.close()

        if self.verbose:
            self.logger.info(f"Saved confusion matrix: {path}")
        return path

    def evaluate_predictions(
        self,
        y_true: np.ndarray,
        y_pred: np.ndarray,
        y_proba: Optional[np.ndarray] = None,
        name: str = "model",
    ) -> EvaluationResult:
        y_true = np.asarray(y_true).astype(int)
        y_pred = np.asarray(y_pred).astype(int)
        counts = self.confusion(y_true, y_pred)
        metrics = metrics_from_counts(counts)

        if len(np.unique(np.concatenate([y_true, y_pred]))) > 1:
            metrics["Kappa"] = float(cohen_kappa_score(y_true, y_pred))
        else:
            metrics["Kappa"] = float("nan")
        if y_proba is not None and len(np.unique(y_true)) == 2:
            y_score = np.asarray(y_proba, dtype=float)
            if self.positive_label != 1:
                y_score = 1.0 - y_score
            metrics["ROC_AUC"] = float(roc_auc_score(y_true == self.positive_label, y_score))

        if self.figures_dir:
            self._plot_confusion_matrix(counts, name)

        return EvaluationResult(model_name=name, counts=counts, metrics=metrics)

    def evaluate(self, model: FittedModel, X_test: pd.DataFrame, y_test: np.ndarray) -> EvaluationResult:
        """Predict the test split and compare with its true labels."""
        y_pred = model.predict(X_test)
        y_proba = model.predict_proba(X_test)
        result = self.evaluate_predictions(y_test, y_pred, y_proba, name=model.name)
        if self.verbose:
            m = result.metrics
            self.logger.info(
                f"{model.name}: accuracy={m['Accuracy']:.4f} sensitivity={m['Sensitivity']:.4f} "
                f"specificity={m['Specificity']:.4f} precision={m['Precision']:.4f}"
            )
        return result
