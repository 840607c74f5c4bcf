import os
from textwrap import indent
from typing import Iterable, Optional

import pandas as pd

from .cleaner import CleaningSummary
from .evaluator import EvaluationResult
from .feature_selector import FeatureSelection
from .models import FittedModel
from .utils.logger import get_logger

_HEADLINE = ["Accuracy", "Sensitivity", "Specificity", "Precision", "Kappa", "ROC_AUC"]


def _format_params(params: dict) -> str:
    return ", ".join(
        f"{k}={v:.4g}" if isinstance(v, float) else f"{k}={v}" for k, v in params.items()
    ) or "-"


def _block(title: str, body: str) -> str:
    return f"{title}\n{'-' * len(title)}\n{body}\n"


class Reporter:
    """Collects human-readable summaries; logs them and optionally writes a text report."""

    def __init__(self, report_path: Optional[str] = None, top_n: int = 15):
        self.report_path = report_path
        self.top_n = top_n
        self.sections: list[str] = []
        self.logger = get_logger(self.__class__.__name__)

    def _add(self, title: str, body: str) -> None:
        self.sections.append(_block(title, body))
        self.logger.info(f"{title}:\n{indent(body, ' ' * 4)}")

    def cleaning(self, summary: CleaningSummary) -> None:
        lines = [
            f"rows: {summary.rows_in:,} -> {summary.rows_out:,}",
            f"failing rate: {summary.positive_rate:.3f}",
            f"dropped columns: {len(summary.dropped_columns)}",
        ]
        lines += [f"  {col}: {why}" for col, why in summary.dropped_columns.items()]
        if summary.kept_above_threshold:
            lines.append(f"kept despite missingness threshold: {summary.kept_above_threshold}")
        self._add("Cleaning", "\n".join(lines))

    def feature_selection(self, selection: FeatureSelection) -> None:
        body = selection.table.to_string(index=False) if selection.table is not None else ""
        body += f"\n\nselected ({len(selection.selected)}): {selection.selected}"
        self._add("Boruta feature selection", body)

    def evaluation(self, result: EvaluationResult) -> None:
        metrics = "\n".join(f"{k}: {v:.4f}" for k, v in result.metrics.items())
        self._add(
            f"Test evaluation: {result.model_name}",
            f"{result.counts.as_frame().to_string()}\n\n{metrics}",
        )

    def model_details(self, model: FittedModel) -> None:
        coefs = model.coefficients()
        if coefs is not None:
            self._add(
                f"Non-zero coefficients: {model.name} ({len(coefs)})",
                coefs.head(self.top_n).to_string(index=False),
            )
        importances = model.importances()
        if importances is not None:
            self._add(
                f"Feature importances: {model.name}",
                importances.head(self.top_n).to_string(index=False),
            )

    @staticmethod
    def comparison_table(
        models: Iterable[FittedModel], results: Iterable[EvaluationResult]
    ) -> pd.DataFrame:
        rows = []
        for model, result in zip(models, results):
            row = {
                "model": model.name,
                "params": _format_params(model.tuned_params),
                "cv_auc": model.cv_score,
            }
            row.update({k: result.metrics.get(k, float("nan")) for k in _HEADLINE})
            rows.append(row)
        return pd.DataFrame(rows)

    def comparison(self, models: Iterable[FittedModel], results: Iterable[EvaluationResult]) -> pd.DataFrame:
        table = self.comparison_table(models, results)
        self._add("Model comparison", table.to_string(index=False, float_format=lambda v: f"{v:.4f}"))
        return table

    def write(self) -> Optional[str]:
        if not self.report_path:
            return None
        directory = os.path.dirname(self.report_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.report_path, "w") as f:
            f.write("\n".join(self.sections))
        self.logger.info(f"Saved report: {self.report_path}")
        return self.report_path
