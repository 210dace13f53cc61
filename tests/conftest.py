import numpy as np
import pandas as pd
import pytest

from college_income.cleaning import build_profiles
from college_income.config import PipelineConfig
from college_income.loader import load_admissions, load_institutions
from college_income.make_synthetic_data import generate_synthetic_tables


def _admissions_rows(super_opeid, name, tier, public, flagship, bins):
    return [
        {
            "super_opeid": super_opeid,
            "name": name,
            "par_income_bin": code,
            "par_income_lab": label,
            "rel_attend": attend,
            "stderr_rel_attend": 0.05,
            "rel_apply": apply,
            "stderr_rel_apply": 0.04,
            "tier_name": tier,
            "public": public,
            "flagship": flagship,
        }
        for code, label, attend, apply in bins
    ]


@pytest.fixture
def small_admissions():
    """
    Four institutions:
      Alpha: attend peaks at Top 0.1, apply at 90-95
      Beta : attend ties between 20-40 and 40-60, apply peaks at 20-40
      Gamma: both peak at 70-80 (one apply rate missing)
      Delta: no cost of attendance in the institutions table
    """
    rows = []
    rows += _admissions_rows(100, "Alpha College", "Ivy Plus", 0, 0, [
        (0, "0-20", 0.5, 0.6),
        (90, "90-95", 1.2, 1.5),
        (100, "Top 0.1", 2.0, 1.1),
    ])
    rows += _admissions_rows(2155, "Beta State", "Selective public", 1, 1, [
        (20, "20-40", 1.4, 1.3),
        (40, "40-60", 1.4, 0.9),
        (60, "60-70", 0.8, 1.0),
    ])
    rows += _admissions_rows(3000, "Gamma Private", "Selective private", 0, 0, [
        (70, "70-80", 1.1, 1.2),
        (80, "80-90", 0.7, np.nan),
    ])
    rows += _admissions_rows(4000, "Delta University", "Highly selective private", 0, 0, [
        (98, "98-99", 1.6, 1.6),
        (99, "99-99.9", 1.0, 1.0),
    ])
    return pd.DataFrame(rows)


@pytest.fixture
def small_institutions():
    def row(opeid6, suffix, name, cost, state, hsi=0):
        return {
            "INSTNM": name,
            "OPEID": opeid6 + suffix,
            "OPEID6": opeid6,
            "COSTT4_A": cost,
            "STABBR": state,
            "HBCU": 0,
            "PBI": 0,
            "TRIBAL": 0,
            "AANAPII": 0,
            "HSI": hsi,
        }

    return pd.DataFrame([
        row("000100", "00", "Alpha College", 80000.0, "MA"),
        row("002155", "00", "Beta State", 25000.0, "TX", hsi=1),
        row("002155", "01", "Beta State - Branch", 27000.0, "TX"),
        row("003000", "00", "Gamma Private", 50000.0, "NY"),
        row("004000", "00", "Delta University", np.nan, "CA"),
        row("009999", "00", "Unrelated College", 10000.0, "OH"),
    ])


@pytest.fixture(scope="session")
def synthetic_paths(tmp_path_factory):
    out = tmp_path_factory.mktemp("data")
    admissions, institutions = generate_synthetic_tables(n_institutions=120, random_state=7)
    admissions_path = out / "admissions.csv"
    institutions_path = out / "institutions.csv"
    admissions.to_csv(admissions_path, index=False)
    institutions.to_csv(institutions_path, index=False)
    return admissions_path, institutions_path


@pytest.fixture(scope="session")
def synthetic_profiles(synthetic_paths):
    admissions_path, institutions_path = synthetic_paths
    return build_profiles(
        load_admissions(admissions_path),
        load_institutions(institutions_path),
        PipelineConfig(),
    )
