"""
college_income/naive_bayes.py

Naive Bayes over a mix of continuous and categorical institution features.

scikit-learn ships one estimator per likelihood family (GaussianNB for
continuous columns, CategoricalNB for discrete ones). MixedNaiveBayes fits one
of each on its share of the columns and adds their log-likelihoods:

    log P(c | x) = log P(c) + sum_part [log P(c | x_part) - log P(c)] + const

which is the usual conditional-independence product written with each part's
posterior. Rows are normalized with logsumexp so probabilities sum to 1.

Per-class variances are sample variances (n - 1 denominator) by default;
GaussianNB itself divides by n, so its var_ is rescaled after fitting.

Categorical columns are encoded against their fixed domain (config.FEATURE_DOMAINS)
rather than the values seen in training, so every cross-validation fold uses
the same codes even when a tier is absent from a fold.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.special import logsumexp
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.naive_bayes import CategoricalNB, GaussianNB
from sklearn.utils.validation import check_is_fitted

from .cleaning import feature_frame
from .config import CONTINUOUS_FEATURES, FEATURE_DOMAINS, PipelineConfig
from .errors import DegenerateVariance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelSpec:
    """A named feature subset."""
    name: str
    features: Tuple[str, ...]
    description: str

    @property
    def continuous(self) -> Tuple[str, ...]:
        return tuple(f for f in self.features if f in CONTINUOUS_FEATURES)

    @property
    def categorical(self) -> Tuple[str, ...]:
        return tuple(f for f in self.features if f not in CONTINUOUS_FEATURES)


MODEL_SPECS: Dict[str, ModelSpec] = {
    "A": ModelSpec("A", ("cost", "tier", "minority_serving", "flagship"),
                   "cost + tier + minority-serving + flagship"),
    "B": ModelSpec("B", ("cost", "tier"), "cost + tier"),
    "C": ModelSpec("C", ("cost", "tier", "minority_serving"), "cost + tier + minority-serving"),
}


class MixedNaiveBayes(ClassifierMixin, BaseEstimator):
    """
    Gaussian likelihoods for `continuous` columns, frequency tables for `categorical` ones.

    Parameters
    ----------
    continuous, categorical : sequences of column names
    domains : optional mapping column -> allowed values, overriding FEATURE_DOMAINS
    var_smoothing : GaussianNB's relative variance smoothing
    min_variance : absolute floor applied to every per-class variance
    ddof : 1 for the per-class sample variance, 0 for GaussianNB's population variance
    alpha : CategoricalNB additive smoothing
    """

    def __init__(
        self,
        continuous: Sequence[str] = ("cost",),
        categorical: Sequence[str] = ("tier",),
        domains: Optional[Mapping[str, Sequence]] = None,
        var_smoothing: float = 1e-9,
        min_variance: float = 1e-6,
        ddof: int = 1,
        alpha: float = 1e-10,
    ):
        self.continuous = continuous
        self.categorical = categorical
        self.domains = domains
        self.var_smoothing = var_smoothing
        self.min_variance = min_variance
        self.ddof = ddof
        self.alpha = alpha

    # -----------------------------
    # Input handling
    # -----------------------------
    def _domain(self, col: str) -> list:
        domains = dict(FEATURE_DOMAINS)
        if self.domains:
            domains.update(self.domains)
        if col not in domains:
            raise ValueError(f"No categorical domain defined for column '{col}'.")
        return list(domains[col])

    def _check_frame(self, X: pd.DataFrame) -> pd.DataFrame:
        if not isinstance(X, pd.DataFrame):
            raise TypeError("MixedNaiveBayes expects a pandas DataFrame with named columns.")
        missing = [c for c in list(self.continuous) + list(self.categorical) if c not in X.columns]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")
        return X

    def _continuous_matrix(self, X: pd.DataFrame) -> np.ndarray:
        values = X[list(self.continuous)].apply(pd.to_numeric, errors="coerce").to_numpy(dtype=float)
        if np.isnan(values).any():
            raise ValueError(f"Continuous columns {list(self.continuous)} contain missing values.")
        return values

    def _encode(self, X: pd.DataFrame) -> np.ndarray:
        codes = np.empty((len(X), len(self.categorical)), dtype=np.int64)
        for j, col in enumerate(self.categorical):
            domain = self._domain(col)
            bad = ~X[col].isin(domain)
            if bad.any():
                seen = sorted(set(X.loc[bad, col].astype(str)))
                raise ValueError(f"Column '{col}' has values outside {domain}: {seen}")
            codes[:, j] = pd.Categorical(X[col], categories=domain).codes
        return codes

    def _variance_floor(self, values: np.ndarray) -> float:
        spread = float(np.var(values, axis=0).max()) if len(values) else 0.0
        return max(self.min_variance, self.var_smoothing * spread)

    def _rescale_variance(self) -> None:
        """Swap GaussianNB's n-denominator variance for an (n - ddof) one; singleton classes keep 0."""
        if not self.ddof:
            return
        n = self.gaussian_.class_count_[:, None]
        scale = np.divide(n, n - self.ddof, out=np.zeros_like(n), where=n > self.ddof)
        eps = self.gaussian_.epsilon_
        self.gaussian_.var_[:] = (self.gaussian_.var_ - eps) * scale + eps

    def _check_spread(self, values: np.ndarray, y: np.ndarray) -> None:
        frame = pd.DataFrame(values, columns=list(self.continuous))
        spread = frame.groupby(y).var(ddof=0)
        cells = [
            (cls, col)
            for cls in spread.index
            for col in spread.columns
            if not spread.loc[cls, col] > 0
        ]
        if not cells:
            return
        floor = self._variance_floor(values)
        if floor <= 0:
            raise DegenerateVariance(
                f"Zero spread for (class, feature) {cells} and no variance floor is set.",
                cells=cells,
            )
        logger.warning("Zero spread for (class, feature) %s; variance floored at %g", cells, floor)

    # -----------------------------
    # Estimator API
    # -----------------------------
    def fit(self, X: pd.DataFrame, y) -> "MixedNaiveBayes":
        X = self._check_frame(X)
        if not (self.continuous or self.categorical):
            raise ValueError("MixedNaiveBayes needs at least one feature column.")

        y = np.asarray(y, dtype=object)
        if pd.isna(y).any():
            raise ValueError("Labels contain missing values.")

        self.classes_, counts = np.unique(y, return_counts=True)
        self.class_count_ = counts
        self.class_log_prior_ = np.log(counts / counts.sum())

        self.gaussian_ = None
        if self.continuous:
            values = self._continuous_matrix(X)
            self._check_spread(values, y)
            self.gaussian_ = GaussianNB(var_smoothing=self.var_smoothing).fit(values, y)
            self._rescale_variance()
            np.maximum(self.gaussian_.var_, self._variance_floor(values), out=self.gaussian_.var_)

        self.categorical_nb_ = None
        if self.categorical:
            self.categorical_nb_ = CategoricalNB(
                alpha=self.alpha,
                force_alpha=True,
                min_categories=[len(self._domain(c)) for c in self.categorical],
            ).fit(self._encode(X), y)

        self.n_features_in_ = len(self.continuous) + len(self.categorical)
        return self

    def _joint_log_likelihood(self, X: pd.DataFrame) -> np.ndarray:
        check_is_fitted(self, "classes_")
        X = self._check_frame(X)
        jll = np.tile(self.class_log_prior_, (len(X), 1))
        if self.gaussian_ is not None:
            jll += self.gaussian_.predict_log_proba(self._continuous_matrix(X)) - self.class_log_prior_
        if self.categorical_nb_ is not None:
            jll += self.categorical_nb_.predict_log_proba(self._encode(X)) - self.class_log_prior_
        return jll

    def predict_log_proba(self, X: pd.DataFrame) -> np.ndarray:
        jll = self._joint_log_likelihood(X)
        return jll - logsumexp(jll, axis=1, keepdims=True)

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        return np.exp(self.predict_log_proba(X))

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        return self.classes_[np.argmax(self._joint_log_likelihood(X), axis=1)]

    # -----------------------------
    # Inspection
    # -----------------------------
    def conditional_tables(self) -> Dict[str, pd.DataFrame]:
        """
        Fitted parameters per feature, one frame per column.

        Continuous columns give per-class mean and standard deviation (after the
        variance floor); categorical columns give P(value | class).
        """
        check_is_fitted(self, "classes_")
        tables: Dict[str, pd.DataFrame] = {}
        if self.gaussian_ is not None:
            for j, col in enumerate(self.continuous):
                tables[col] = pd.DataFrame(
                    {"mean": self.gaussian_.theta_[:, j], "sd": np.sqrt(self.gaussian_.var_[:, j])},
                    index=pd.Index(self.classes_, name="class"),
                )
        if self.categorical_nb_ is not None:
            for j, col in enumerate(self.categorical):
                tables[col] = pd.DataFrame(
                    np.exp(self.categorical_nb_.feature_log_prob_[j]),
                    index=pd.Index(self.classes_, name="class"),
                    columns=[str(v) for v in self._domain(col)],
                )
        return tables

    def priors(self) -> pd.Series:
        check_is_fitted(self, "classes_")
        return pd.Series(np.exp(self.class_log_prior_), index=self.classes_, name="prior")


def build_model(spec: ModelSpec, config: Optional[PipelineConfig] = None) -> MixedNaiveBayes:
    config = config or PipelineConfig()
    return MixedNaiveBayes(
        continuous=spec.continuous,
        categorical=spec.categorical,
        var_smoothing=config.var_smoothing,
        min_variance=config.min_variance,
        ddof=config.variance_ddof,
        alpha=config.alpha,
    )


def fit_model(
    profiles: pd.DataFrame,
    spec: ModelSpec,
    config: Optional[PipelineConfig] = None,
) -> MixedNaiveBayes:
    """Fit one model on the full profile table."""
    X, y = feature_frame(profiles, spec.features)
    model = build_model(spec, config).fit(X, y)
    logger.info("Fitted model %s (%s) on %d institutions", spec.name, spec.description, len(X))
    return model
