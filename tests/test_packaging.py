from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]


def test_project_metadata_has_no_working_notes_as_long_description():
    pyproject = (ROOT / "pyproject.toml").read_text()
    project_table = pyproject.split("[project]", 1)[1].split("\n[", 1)[0]
    assert "readme" not in project_table
    assert "SPEC_FULL" not in pyproject
