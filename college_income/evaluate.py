"""
college_income/evaluate.py

Two kinds of evaluation, kept apart on purpose:

  - in_sample_confusion : a fitted model scored on its own training rows.
                          Measures fit only; tagged kind="in-sample".
  - cross_validate      : stratified k-fold; every row is predicted exactly
                          once by a model that never saw it. Tagged
                          kind="cross-validated".

Fold assignment depends only on PipelineConfig.random_state and n_splits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score, confusion_matrix
from sklearn.model_selection import StratifiedKFold

from .cleaning import feature_frame
from .config import INCOME_GROUP_LEVELS, PipelineConfig
from .naive_bayes import MODEL_SPECS, ModelSpec, build_model

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfusionSummary:
    """Actual (rows) vs predicted (columns) counts over the fixed label domain."""
    counts: pd.DataFrame
    row_percent: pd.DataFrame
    accuracy: float
    n: int
    kind: str

    def to_dict(self) -> Dict:
        return {
            "kind": self.kind,
            "n": self.n,
            "accuracy": self.accuracy,
            "labels": [str(c) for c in self.counts.columns],
            "counts": self.counts.to_numpy().tolist(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ConfusionSummary":
        """Rebuild from to_dict() output (e.g. metrics.json)."""
        labels = list(data["labels"])
        counts = pd.DataFrame(
            np.asarray(data["counts"], dtype=int),
            index=pd.Index(labels, name="actual"),
            columns=pd.Index(labels, name="predicted"),
        )
        row_percent = (counts.div(counts.sum(axis=1).replace(0, np.nan), axis=0) * 100).fillna(0.0)
        return cls(
            counts=counts,
            row_percent=row_percent,
            accuracy=float(data["accuracy"]),
            n=int(data["n"]),
            kind=data["kind"],
        )


@dataclass(frozen=True)
class CrossValidationResult:
    model_name: str
    features: Sequence[str]
    fold_accuracy: List[float]
    fold_sizes: List[int]
    confusion: ConfusionSummary
    seed: int
    n_splits: int

    @property
    def accuracy(self) -> float:
        return self.confusion.accuracy

    def folds_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "fold": range(1, len(self.fold_accuracy) + 1),
                "n": self.fold_sizes,
                "accuracy": self.fold_accuracy,
            }
        )

    def to_dict(self) -> Dict:
        return {
            "model": self.model_name,
            "features": list(self.features),
            "seed": self.seed,
            "n_splits": self.n_splits,
            "fold_accuracy": self.fold_accuracy,
            "fold_sizes": self.fold_sizes,
            "mean_fold_accuracy": float(np.mean(self.fold_accuracy)),
            "confusion": self.confusion.to_dict(),
        }


def confusion_summary(
    y_true,
    y_pred,
    kind: str,
    labels: Sequence[str] = INCOME_GROUP_LEVELS,
) -> ConfusionSummary:
    """Cross-tabulate actual vs predicted and derive row percentages and accuracy."""
    y_true = np.asarray(y_true, dtype=object)
    y_pred = np.asarray(y_pred, dtype=object)
    labels = list(labels)

    cm = confusion_matrix(y_true, y_pred, labels=labels)
    counts = pd.DataFrame(
        cm,
        index=pd.Index(labels, name="actual"),
        columns=pd.Index(labels, name="predicted"),
    )
    row_totals = counts.sum(axis=1)
    row_percent = (counts.div(row_totals.replace(0, np.nan), axis=0) * 100).fillna(0.0)

    n = int(cm.sum())
    accuracy = float(np.trace(cm) / n) if n else float("nan")
    return ConfusionSummary(counts=counts, row_percent=row_percent, accuracy=accuracy, n=n, kind=kind)


def in_sample_confusion(model, X: pd.DataFrame, y) -> ConfusionSummary:
    """Score a fitted model on the rows it was trained on (fit, not generalization)."""
    return confusion_summary(y, model.predict(X), kind="in-sample")


def cross_validate(
    profiles: pd.DataFrame,
    spec: ModelSpec,
    config: Optional[PipelineConfig] = None,
) -> CrossValidationResult:
    """
    Stratified k-fold cross-validation of one feature subset.

    Each held-out fold is predicted by a model trained on the other k-1 folds;
    the pooled predictions form the aggregate confusion matrix, whose total
    equals len(profiles).
    """
    config = config or PipelineConfig()
    X, y = feature_frame(profiles, spec.features)
    labels = np.asarray(y, dtype=object)

    smallest = int(pd.Series(labels).value_counts().min())
    if smallest < config.n_splits:
        logger.warning(
            "Smallest income group has %d institutions, fewer than n_splits=%d; "
            "some folds will miss that group",
            smallest, config.n_splits,
        )

    skf = StratifiedKFold(n_splits=config.n_splits, shuffle=True, random_state=config.random_state)
    predicted = np.empty(len(X), dtype=object)
    fold_accuracy: List[float] = []
    fold_sizes: List[int] = []

    for fold, (tr, va) in enumerate(skf.split(X, labels), 1):
        model = build_model(spec, config).fit(X.iloc[tr], labels[tr])
        predicted[va] = model.predict(X.iloc[va])
        acc = float(accuracy_score(labels[va], predicted[va]))
        fold_accuracy.append(acc)
        fold_sizes.append(int(len(va)))
        logger.debug("Model %s fold %d: n=%d accuracy=%.3f", spec.name, fold, len(va), acc)

    confusion = confusion_summary(labels, predicted, kind="cross-validated")
    logger.info(
        "Model %s: %d-fold CV accuracy %.4f (seed=%d)",
        spec.name, config.n_splits, confusion.accuracy, config.random_state,
    )
    return CrossValidationResult(
        model_name=spec.name,
        features=spec.features,
        fold_accuracy=fold_accuracy,
        fold_sizes=fold_sizes,
        confusion=confusion,
        seed=config.random_state,
        n_splits=config.n_splits,
    )


def compare_models(
    profiles: pd.DataFrame,
    config: Optional[PipelineConfig] = None,
) -> Dict[str, CrossValidationResult]:
    """Cross-validate every configured model with the same folds."""
    config = config or PipelineConfig()
    return {name: cross_validate(profiles, MODEL_SPECS[name], config) for name in config.model_names}


def select_best(results: Dict[str, CrossValidationResult]) -> str:
    """Name of the model with the highest aggregate CV accuracy (first one wins ties)."""
    if not results:
        raise ValueError("No cross-validation results to choose from.")
    return max(results, key=lambda name: results[name].accuracy)


def summary_frame(
    results: Dict[str, CrossValidationResult],
    in_sample: Optional[Dict[str, ConfusionSummary]] = None,
) -> pd.DataFrame:
    """One row per model: features, in-sample accuracy (if given), CV accuracy and fold spread."""
    rows = []
    for name, res in results.items():
        row = {
            "model": name,
            "features": " + ".join(res.features),
            "cv_accuracy": res.accuracy,
            "fold_mean": float(np.mean(res.fold_accuracy)),
            "fold_sd": float(np.std(res.fold_accuracy, ddof=1)) if len(res.fold_accuracy) > 1 else 0.0,
        }
        if in_sample and name in in_sample:
            row["in_sample_accuracy"] = in_sample[name].accuracy
        rows.append(row)
    return pd.DataFrame(rows).set_index("model")
