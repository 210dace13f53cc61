import numpy as np
import pytest

from college_income.cleaning import feature_frame
from college_income.config import INCOME_GROUP_LEVELS, PipelineConfig
from college_income.evaluate import (
    ConfusionSummary,
    compare_models,
    confusion_summary,
    cross_validate,
    in_sample_confusion,
    select_best,
    summary_frame,
)
from college_income.naive_bayes import MODEL_SPECS, fit_model

CONFIG = PipelineConfig(n_splits=5, random_state=11)


def test_confusion_summary_counts_percentages_and_accuracy():
    y_true = ["0-20", "0-20", "20-60", "Top 1", "Top 1"]
    y_pred = ["0-20", "20-60", "20-60", "Top 1", "0-20"]
    summary = confusion_summary(y_true, y_pred, kind="in-sample")

    assert list(summary.counts.index) == list(INCOME_GROUP_LEVELS)
    assert summary.counts.loc["0-20", "20-60"] == 1
    assert summary.counts.to_numpy().sum() == 5
    assert summary.accuracy == pytest.approx(3 / 5)
    assert summary.row_percent.loc["0-20", "0-20"] == pytest.approx(50.0)
    # a label with no rows gets zeros, not NaN
    assert summary.row_percent.loc["60-90"].sum() == 0.0


def test_confusion_summary_round_trips_through_dict():
    summary = confusion_summary(["0-20", "Top 1"], ["0-20", "0-20"], kind="cross-validated")
    restored = ConfusionSummary.from_dict(summary.to_dict())
    assert restored.kind == "cross-validated"
    assert restored.accuracy == summary.accuracy
    assert (restored.counts.to_numpy() == summary.counts.to_numpy()).all()


def test_in_sample_confusion_is_tagged(synthetic_profiles):
    spec = MODEL_SPECS["B"]
    model = fit_model(synthetic_profiles, spec, CONFIG)
    X, y = feature_frame(synthetic_profiles, spec.features)
    summary = in_sample_confusion(model, X, y)

    assert summary.kind == "in-sample"
    assert summary.n == len(synthetic_profiles)
    assert 0.0 <= summary.accuracy <= 1.0


def test_cross_validation_predicts_each_row_once(synthetic_profiles):
    result = cross_validate(synthetic_profiles, MODEL_SPECS["B"], CONFIG)

    assert len(result.fold_accuracy) == CONFIG.n_splits
    assert sum(result.fold_sizes) == len(synthetic_profiles)
    assert int(result.confusion.counts.to_numpy().sum()) == len(synthetic_profiles)
    assert result.confusion.kind == "cross-validated"

    # pooled accuracy is the size-weighted mean of the fold accuracies
    weighted = np.average(result.fold_accuracy, weights=result.fold_sizes)
    assert result.accuracy == pytest.approx(weighted)


def test_cross_validation_is_deterministic_for_a_seed(synthetic_profiles):
    first = cross_validate(synthetic_profiles, MODEL_SPECS["A"], CONFIG)
    second = cross_validate(synthetic_profiles, MODEL_SPECS["A"], CONFIG)
    assert first.fold_accuracy == second.fold_accuracy
    assert (first.confusion.counts == second.confusion.counts).all().all()
    assert first.seed == CONFIG.random_state


def test_compare_models_and_select_best(synthetic_profiles):
    results = compare_models(synthetic_profiles, CONFIG)
    assert set(results) == {"A", "B", "C"}

    best = select_best(results)
    assert results[best].accuracy == max(r.accuracy for r in results.values())

    table = summary_frame(results)
    assert list(table.index) == ["A", "B", "C"]
    assert {"features", "cv_accuracy", "fold_mean", "fold_sd"} <= set(table.columns)


def test_select_best_needs_results():
    with pytest.raises(ValueError):
        select_best({})
