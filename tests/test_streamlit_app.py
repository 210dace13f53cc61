from pathlib import Path

import pytest

from college_income.train import main

streamlit_testing = pytest.importorskip("streamlit.testing.v1")

APP = Path(__file__).resolve().parents[1] / "app" / "streamlit_app.py"


@pytest.fixture
def trained_workdir(tmp_path, synthetic_paths, monkeypatch):
    admissions_path, institutions_path = synthetic_paths
    main([
        "--admissions", str(admissions_path),
        "--institutions", str(institutions_path),
        "--artifact-dir", str(tmp_path / "artifacts"),
        "--n-splits", "5",
    ])
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_dashboard_shows_fitted_parameters(trained_workdir):
    at = streamlit_testing.AppTest.from_file(str(APP), default_timeout=120).run()

    assert not at.exception
    labels = [e.label for e in at.expander]
    assert any(label.startswith("Fitted parameters of the deployed model") for label in labels)
    markdown = " ".join(m.value for m in at.markdown)
    assert "Class priors" in markdown
    assert "**cost**: mean / sd per class" in markdown
    assert "**tier**: P(value | class)" in markdown
