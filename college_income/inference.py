"""
college_income/inference.py

Scoring-time helpers shared by the dashboard and any batch use:
load the saved model bundle, validate an incoming table of institutions, and
return posterior probabilities per income group.

Artifacts expected in artifacts/:
  - model.pkl      : fitted MixedNaiveBayes (selected model)
  - features.json  : ordered list of feature columns used during training
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

import joblib
import pandas as pd

from .config import ARTIFACT_DIR, CONTINUOUS_FEATURES, FEATURE_DOMAINS, TIER_ALIASES
from .loader import coerce_flag


@dataclass(frozen=True)
class ModelBundle:
    """Everything needed for scoring, kept together."""
    model: object
    features: List[str]

    @property
    def classes(self) -> List[str]:
        return [str(c) for c in self.model.classes_]


def load_bundle(artifact_dir: Path = ARTIFACT_DIR) -> ModelBundle:
    """
    Load model + feature metadata from disk.

    Raises
    ------
    FileNotFoundError
        If required artifact files are missing.
    """
    model_path = artifact_dir / "model.pkl"
    feat_path = artifact_dir / "features.json"

    if not model_path.exists():
        raise FileNotFoundError(
            f"Missing {model_path}. Train first (python -m college_income.train)."
        )

    if not feat_path.exists():
        raise FileNotFoundError(
            f"Missing {feat_path}. Re-train to generate it (python -m college_income.train)."
        )

    model = joblib.load(model_path)
    features = json.loads(feat_path.read_text())

    if not isinstance(features, list) or not all(isinstance(x, str) for x in features):
        raise ValueError("features.json is not a valid list of strings.")

    return ModelBundle(model=model, features=features)


def validate_features(df: pd.DataFrame, features: List[str]) -> Tuple[pd.DataFrame, List[str]]:
    """
    Validate and prepare institution rows for scoring.

      1) Required columns must be present (hard error).
      2) Extra columns are ignored (warning).
      3) cost is coerced to numeric; missing values are imputed with the median (warning).
      4) Categorical columns are mapped onto their fixed domains; values outside
         the domain are a hard error.

    Returns
    -------
    X : DataFrame with only the model features, in training order.
    warnings : human-readable notes on non-fatal issues.
    """
    warnings: List[str] = []

    missing = [c for c in features if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    extra = [c for c in df.columns if c not in features]
    if extra:
        warnings.append(f"Ignoring extra columns: {extra}")

    X = df[features].copy()

    for c in features:
        if c in CONTINUOUS_FEATURES:
            X[c] = pd.to_numeric(X[c], errors="coerce")
            n_missing = int(X[c].isna().sum())
            if n_missing:
                if X[c].notna().sum() == 0:
                    raise ValueError(f"Column '{c}' has no numeric values.")
                warnings.append(
                    f"Found {n_missing} missing/non-numeric values in '{c}'; imputing with column median."
                )
                X[c] = X[c].fillna(X[c].median())
        elif c == "tier":
            X[c] = X[c].astype(str).str.strip().replace(TIER_ALIASES)
        elif c in ("public", "flagship"):
            X[c] = coerce_flag(X[c])
        elif c == "minority_serving":
            X[c] = coerce_flag(X[c]).astype(bool)

        if c in FEATURE_DOMAINS:
            bad = ~X[c].isin(FEATURE_DOMAINS[c])
            if bad.any():
                raise ValueError(
                    f"Column '{c}' has values outside {list(FEATURE_DOMAINS[c])}: "
                    f"{sorted(set(X.loc[bad, c].astype(str)))}"
                )

    return X, warnings


def score(df: pd.DataFrame, bundle: ModelBundle) -> pd.DataFrame:
    """
    Posterior probability of each income group plus the predicted group.

    Returns a frame aligned to df.index with one `p_<group>` column per class
    and a `predicted_group` column.
    """
    X, _ = validate_features(df, bundle.features)
    proba = bundle.model.predict_proba(X)

    out = pd.DataFrame(proba, index=df.index, columns=[f"p_{c}" for c in bundle.classes])
    out["predicted_group"] = bundle.model.predict(X)
    return out
