"""
college_income/config.py

Run settings and the fixed categorical domains shared by cleaning, modeling,
reporting and the dashboard.

Everything that changes the numbers of a run (seed, fold count, tie-break
policy, variance floor) lives on PipelineConfig so it can be written to
artifacts/config.json next to the model.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, Tuple


ARTIFACT_DIR = Path("artifacts")
DATA_DIR = Path("data")

TIDYTUESDAY_BASE_URL = "https://raw.githubusercontent.com/rfordatascience/tidytuesday/main/data"


def tidytuesday_url(date: str = "2024-09-10", file: str = "college_admissions.csv") -> str:
    """Build the raw CSV URL for a TidyTuesday release (date is the release day, YYYY-MM-DD)."""
    year = date.split("-")[0]
    return f"{TIDYTUESDAY_BASE_URL}/{year}/{date}/{file}"


DEFAULT_ADMISSIONS_SOURCE = tidytuesday_url()
DEFAULT_INSTITUTIONS_PATH = DATA_DIR / "Most-Recent-Cohorts-Institution.csv"

SYNTHETIC_ADMISSIONS_PATH = DATA_DIR / "college_admissions_synthetic.csv"
SYNTHETIC_INSTITUTIONS_PATH = DATA_DIR / "institutions_synthetic.csv"


# ---------------------------------------------------------------------
# Raw schemas (columns kept by the loader)
# ---------------------------------------------------------------------
ADMISSIONS_COLUMNS = [
    "super_opeid",
    "name",
    "par_income_bin",
    "par_income_lab",
    "rel_attend",
    "stderr_rel_attend",
    "rel_apply",
    "stderr_rel_apply",
    "tier_name",
    "public",
    "flagship",
]

MINORITY_SERVING_INDICATORS = ["HBCU", "PBI", "TRIBAL", "AANAPII", "HSI"]

INSTITUTION_COLUMNS = [
    "INSTNM",
    "OPEID",
    "OPEID6",
    "COSTT4_A",
    "STABBR",
] + MINORITY_SERVING_INDICATORS


# ---------------------------------------------------------------------
# Fixed categorical domains
# ---------------------------------------------------------------------
# Lowest to highest selectivity.
TIER_LEVELS: Tuple[str, ...] = (
    "Selective private",
    "Selective public",
    "Highly selective private",
    "Highly selective public",
    "Other elite schools (public and private)",
    "Ivy Plus",
)

TIER_ALIASES: Dict[str, str] = {
    "Other elite schools": "Other elite schools (public and private)",
}

# Parental income percentile bins in rank order.
INCOME_BIN_LEVELS: Tuple[str, ...] = (
    "0-20",
    "20-40",
    "40-60",
    "60-70",
    "70-80",
    "80-90",
    "90-95",
    "95-96",
    "96-97",
    "97-98",
    "98-99",
    "99-99.9",
    "Top 0.1",
    "Top 1",
)

INCOME_GROUP_LEVELS: Tuple[str, ...] = ("0-20", "20-60", "60-90", "90-99.9", "Top 1")

# Canonical labels map to themselves so collapsing twice is a no-op.
INCOME_GROUP_COLLAPSE: Dict[str, str] = {
    "0-20": "0-20",
    "20-40": "20-60",
    "40-60": "20-60",
    "20-60": "20-60",
    "60-70": "60-90",
    "70-80": "60-90",
    "80-90": "60-90",
    "60-90": "60-90",
    "90-95": "90-99.9",
    "95-96": "90-99.9",
    "96-97": "90-99.9",
    "97-98": "90-99.9",
    "98-99": "90-99.9",
    "99-99.9": "90-99.9",
    "90-99.9": "90-99.9",
    "Top 0.1": "Top 1",
    "Top 1": "Top 1",
}

# Domains of the model features; continuous features have no entry.
FEATURE_DOMAINS: Dict[str, tuple] = {
    "tier": TIER_LEVELS,
    "public": (0, 1),
    "flagship": (0, 1),
    "minority_serving": (False, True),
}

CONTINUOUS_FEATURES = ("cost",)
LABEL_COL = "income_group_attend"

TIE_BREAK_POLICIES = ("lowest_bin", "keep_all")


@dataclass(frozen=True)
class PipelineConfig:
    """Settings for one end-to-end run."""
    admissions_source: str = DEFAULT_ADMISSIONS_SOURCE
    institutions_path: str = str(DEFAULT_INSTITUTIONS_PATH)
    artifact_dir: str = str(ARTIFACT_DIR)
    n_splits: int = 10
    random_state: int = 42
    tie_break: str = "lowest_bin"
    # GaussianNB smoothing plus an absolute floor on per-class variance
    var_smoothing: float = 1e-9
    min_variance: float = 1e-6
    # 1: per-class sample variance (n - 1 denominator); 0: population variance
    variance_ddof: int = 1
    # CategoricalNB additive smoothing; near zero keeps raw frequency tables
    alpha: float = 1e-10
    min_match_rate: float = 0.5
    model_names: Tuple[str, ...] = field(default=("A", "B", "C"))

    def __post_init__(self) -> None:
        if self.tie_break not in TIE_BREAK_POLICIES:
            raise ValueError(
                f"tie_break must be one of {TIE_BREAK_POLICIES}, got {self.tie_break!r}"
            )
        if self.n_splits < 2:
            raise ValueError("n_splits must be at least 2.")
        if self.variance_ddof not in (0, 1):
            raise ValueError("variance_ddof must be 0 or 1.")

    def to_dict(self) -> Dict:
        out = asdict(self)
        out["model_names"] = list(self.model_names)
        return out
