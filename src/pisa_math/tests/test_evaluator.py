import numpy as np
import pandas as pd
import pytest
from sklearn.metrics import accuracy_score, precision_score, recall_score

from pisa_math.errors import EvaluationError
from pisa_math.evaluator import ConfusionCounts, Evaluator, metrics_from_counts
from pisa_math.model_trainer import ModelTrainer
from pisa_math.utils.random import make_rng

Y_TRUE = np.array([1, 1, 1, 1, 0, 0, 0, 0, 0, 0])
Y_PRED = np.array([1, 1, 1, 0, 1, 1, 0, 0, 0, 0])


def test_confusion_counts():
    counts = Evaluator(verbose=False).confusion(Y_TRUE, Y_PRED)
    assert counts == ConfusionCounts(tp=3, tn=4, fp=2, fn=1)
    assert counts.total == len(Y_TRUE)


def test_metrics_match_standard_formulas():
    counts = ConfusionCounts(tp=3, tn=4, fp=2, fn=1)
    m = metrics_from_counts(counts)

    assert m["Accuracy"] == pytest.approx(7 / 10)
    assert m["Sensitivity"] == pytest.approx(3 / 4)
    assert m["Specificity"] == pytest.approx(4 / 6)
    assert m["Precision"] == pytest.approx(3 / 5)
    assert m["NPV"] == pytest.approx(4 / 5)
    assert m["Balanced_Accuracy"] == pytest.approx((3 / 4 + 4 / 6) / 2)
    assert m["Prevalence"] == pytest.approx(4 / 10)


def test_metrics_agree_with_sklearn():
    m = Evaluator(verbose=False).evaluate_predictions(Y_TRUE, Y_PRED).metrics
    assert m["Accuracy"] == pytest.approx(accuracy_score(Y_TRUE, Y_PRED))
    assert m["Sensitivity"] == pytest.approx(recall_score(Y_TRUE, Y_PRED))
    assert m["Specificity"] == pytest.approx(recall_score(Y_TRUE, Y_PRED, pos_label=0))
    assert m["Precision"] == pytest.approx(precision_score(Y_TRUE, Y_PRED))


def test_undefined_ratios_are_nan():
    m = metrics_from_counts(ConfusionCounts(tp=0, tn=5, fp=0, fn=0))
    assert np.isnan(m["Precision"])
    assert np.isnan(m["Sensitivity"])
    assert m["Specificity"] == 1.0


def test_positive_label_can_be_switched():
    counts = Evaluator(positive_label=0, verbose=False).confusion(Y_TRUE, Y_PRED)
    assert counts == ConfusionCounts(tp=4, tn=3, fp=1, fn=2)


def test_counts_sum_to_test_size():
    rng = np.random.default_rng(0)
    y_true = rng.integers(0, 2, 321)
    y_pred = rng.integers(0, 2, 321)
    counts = Evaluator(verbose=False).confusion(y_true, y_pred)
    assert counts.total == 321


def test_counts_with_a_single_observed_class():
    counts = Evaluator(verbose=False).confusion(np.zeros(5, dtype=int), np.zeros(5, dtype=int))
    assert counts == ConfusionCounts(tp=0, tn=5, fp=0, fn=0)


def test_shape_mismatch_is_fatal():
    with pytest.raises(EvaluationError) as err:
        Evaluator(verbose=False).confusion(Y_TRUE, Y_PRED[:-1])
    assert err.value.stage == "Evaluator"


def _perfect_item(n_rows, seed):
    rng = np.random.default_rng(seed)
    y = rng.integers(0, 2, n_rows)
    X = pd.DataFrame({"ITEM": pd.Categorical(y)})
    return X, y


@pytest.mark.parametrize("family", ["logistic_regression", "random_forest"])
def test_perfectly_predictive_item_gives_full_accuracy(family):
    X_train, y_train = _perfect_item(300, seed=1)
    X_test, y_test = _perfect_item(100, seed=2)

    base = {"n_estimators": 20} if family == "random_forest" else None
    model = ModelTrainer(family, make_rng(0), base_params=base).fit_final(X_train, y_train)
    result = Evaluator(verbose=False).evaluate(model, X_test, y_test)

    assert result.metrics["Accuracy"] == 1.0
    assert result.counts.fp == 0 and result.counts.fn == 0
    assert result.counts.total == len(y_test)
    assert result.metrics["ROC_AUC"] == 1.0


def test_confusion_heatmap_is_saved(tmp_path):
    evaluator = Evaluator(figures_dir=str(tmp_path), verbose=False)
    evaluator.evaluate_predictions(Y_TRUE, Y_PRED, name="lasso_logistic+smote")
    assert (tmp_path / "confusion_matrix_lasso_logistic_smote.png").exists()


def test_confusion_frame_layout():
    frame = ConfusionCounts(tp=3, tn=4, fp=2, fn=1).as_frame()
    assert frame.loc["actual positive", "predicted positive"] == 3
    assert frame.loc["actual negative", "predicted positive"] == 2
    assert frame.to_numpy().sum() == 10
