import json

import joblib
import numpy as np
import pandas as pd
import pytest

from college_income.config import PipelineConfig
from college_income.inference import load_bundle, score, validate_features
from college_income.naive_bayes import MODEL_SPECS, fit_model


@pytest.fixture
def artifact_dir(tmp_path, synthetic_profiles):
    spec = MODEL_SPECS["C"]
    model = fit_model(synthetic_profiles, spec, PipelineConfig())
    joblib.dump(model, tmp_path / "model.pkl")
    (tmp_path / "features.json").write_text(json.dumps(list(spec.features)))
    return tmp_path


def test_load_bundle_requires_artifacts(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_bundle(tmp_path)


def test_load_bundle_rejects_bad_feature_file(artifact_dir):
    (artifact_dir / "features.json").write_text(json.dumps({"cost": 1}))
    with pytest.raises(ValueError):
        load_bundle(artifact_dir)


def test_score_returns_posteriors_and_prediction(artifact_dir, synthetic_profiles):
    bundle = load_bundle(artifact_dir)
    rows = synthetic_profiles.head(10)

    out = score(rows, bundle)

    assert list(out.index) == list(rows.index)
    proba_cols = [f"p_{c}" for c in bundle.classes]
    assert list(out.columns) == proba_cols + ["predicted_group"]
    np.testing.assert_allclose(out[proba_cols].sum(axis=1), 1.0)


def test_validate_features_coerces_and_warns():
    raw = pd.DataFrame(
        {
            "cost": ["50000", "n/a", "30000"],
            "tier": ["Ivy Plus", "Other elite schools", "Selective public"],
            "minority_serving": ["TRUE", "FALSE", "1"],
            "state": ["MA", "NY", "TX"],
        }
    )
    X, warnings = validate_features(raw, ["cost", "tier", "minority_serving"])

    assert X["cost"].tolist() == [50000.0, 40000.0, 30000.0]
    assert X["tier"].iloc[1] == "Other elite schools (public and private)"
    assert X["minority_serving"].tolist() == [True, False, True]
    assert any("extra columns" in w for w in warnings)
    assert any("median" in w for w in warnings)


def test_validate_features_rejects_missing_and_unknown():
    with pytest.raises(ValueError):
        validate_features(pd.DataFrame({"cost": [1.0]}), ["cost", "tier"])
    with pytest.raises(ValueError):
        validate_features(pd.DataFrame({"cost": [1.0], "tier": ["Community college"]}), ["cost", "tier"])
