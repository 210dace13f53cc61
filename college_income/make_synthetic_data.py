"""
college_income/make_synthetic_data.py

Creates realistic-looking versions of the two raw tables so the pipeline can
run offline:

  data/college_admissions_synthetic.csv : one row per (institution, income bin),
                                          admissions release layout
  data/institutions_synthetic.csv       : College Scorecard layout, including
                                          branch campuses, suppressed costs and
                                          institutions absent from admissions
"""

from __future__ import annotations

from pathlib import Path
from typing import Tuple

import numpy as np
import pandas as pd

from .config import (
    DATA_DIR,
    INCOME_BIN_LEVELS,
    MINORITY_SERVING_INDICATORS,
    SYNTHETIC_ADMISSIONS_PATH,
    SYNTHETIC_INSTITUTIONS_PATH,
    TIER_LEVELS,
)

INCOME_BIN_CODES = [0, 20, 40, 60, 70, 80, 90, 95, 96, 97, 98, 99, 99.9, 100]

TIER_SHARES = [0.30, 0.28, 0.15, 0.12, 0.08, 0.07]

# Index into INCOME_BIN_LEVELS where relative attendance tends to peak.
TIER_PEAK = {
    "Selective private": 5,
    "Selective public": 3,
    "Highly selective private": 9,
    "Highly selective public": 6,
    "Other elite schools (public and private)": 11,
    "Ivy Plus": 12,
}

# Mean annual cost of attendance (USD) by tier and control.
TIER_COST = {
    "Selective private": 55000,
    "Selective public": 27000,
    "Highly selective private": 68000,
    "Highly selective public": 31000,
    "Other elite schools (public and private)": 72000,
    "Ivy Plus": 80000,
}

STATES = ["CA", "NY", "TX", "MA", "PA", "IL", "OH", "NC", "GA", "MI", "VA", "WA", "FL", "MN", "CO"]


def _rate_profile(rng: np.random.Generator, peak: int, width: float = 2.2) -> np.ndarray:
    """Relative rates across the income bins, peaked at `peak`, normalized to mean 1."""
    bins = np.arange(len(INCOME_BIN_LEVELS))
    shape = np.exp(-((bins - peak) ** 2) / (2 * width ** 2))
    noisy = shape * rng.lognormal(0.0, 0.25, size=len(bins)) + 0.05
    return noisy / noisy.mean()


def generate_admissions_dataset(
    n_institutions: int = 160,
    random_state: int = 42,
) -> pd.DataFrame:
    rng = np.random.default_rng(random_state)
    rows = []

    tiers = rng.choice(len(TIER_LEVELS), size=n_institutions, p=TIER_SHARES)
    for i in range(n_institutions):
        tier = TIER_LEVELS[tiers[i]]
        if "public" in tier and "private" not in tier:
            public = 1
        elif "private" in tier and "public" not in tier:
            public = 0
        else:
            public = int(rng.random() < 0.3)
        flagship = int(public == 1 and rng.random() < 0.35)

        attend_peak = int(np.clip(TIER_PEAK[tier] + rng.integers(-2, 3), 0, len(INCOME_BIN_LEVELS) - 1))
        apply_peak = int(np.clip(attend_peak + rng.integers(-1, 2), 0, len(INCOME_BIN_LEVELS) - 1))
        rel_attend = _rate_profile(rng, attend_peak)
        rel_apply = _rate_profile(rng, apply_peak, width=3.0)

        super_opeid = 1000 + 7 * i
        for b, (code, label) in enumerate(zip(INCOME_BIN_CODES, INCOME_BIN_LEVELS)):
            rows.append(
                {
                    "super_opeid": super_opeid,
                    "name": f"Synthetic University {i:03d}",
                    "par_income_bin": code,
                    "par_income_lab": label,
                    "attend": round(float(rel_attend[b]) * 0.002, 6),
                    "rel_attend": round(float(rel_attend[b]), 4),
                    "stderr_rel_attend": round(abs(float(rng.normal(0.05, 0.02))), 4),
                    "rel_apply": round(float(rel_apply[b]), 4),
                    "stderr_rel_apply": round(abs(float(rng.normal(0.04, 0.015))), 4),
                    "tier": tiers[i] + 1,
                    "tier_name": tier,
                    "public": public,
                    "flagship": flagship,
                }
            )

    return pd.DataFrame(rows)


def generate_institutions_dataset(
    admissions: pd.DataFrame,
    n_unmatched: int = 40,
    random_state: int = 42,
) -> pd.DataFrame:
    rng = np.random.default_rng(random_state + 1)
    colleges = admissions.drop_duplicates("super_opeid")
    rows = []

    def _row(opeid6: str, suffix: str, name: str, cost: float, public: int) -> dict:
        row = {
            "UNITID": int(rng.integers(100000, 999999)),
            "OPEID": opeid6 + suffix,
            "OPEID6": opeid6,
            "INSTNM": name,
            "STABBR": str(rng.choice(STATES)),
            "COSTT4_A": cost,
        }
        for ind in MINORITY_SERVING_INDICATORS:
            p = 0.12 if (ind == "HSI" and public) else 0.02
            row[ind] = int(rng.random() < p)
        return row

    for _, c in colleges.iterrows():
        opeid6 = f"{int(c['super_opeid']):06d}"
        mean_cost = TIER_COST[c["tier_name"]] * (0.75 if c["public"] else 1.0)
        cost = round(float(rng.normal(mean_cost, 0.08 * mean_cost)), -1)
        if rng.random() < 0.06:
            cost = np.nan  # suppressed
        rows.append(_row(opeid6, "00", c["name"], cost, int(c["public"])))

        if rng.random() < 0.15:
            branch_cost = round(float(rng.normal(mean_cost * 0.9, 0.05 * mean_cost)), -1)
            rows.append(_row(opeid6, "01", f"{c['name']} - Branch Campus", branch_cost, int(c["public"])))

    for j in range(n_unmatched):
        opeid6 = f"{900000 + j:06d}"
        rows.append(_row(opeid6, "00", f"Unranked College {j:03d}", round(float(rng.normal(30000, 8000)), -1), 0))

    df = pd.DataFrame(rows)
    return df.sample(frac=1.0, random_state=random_state).reset_index(drop=True)


def generate_synthetic_tables(
    n_institutions: int = 160,
    random_state: int = 42,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    admissions = generate_admissions_dataset(n_institutions, random_state)
    institutions = generate_institutions_dataset(admissions, random_state=random_state)
    return admissions, institutions


def main() -> None:
    out_dir = Path(DATA_DIR)
    out_dir.mkdir(parents=True, exist_ok=True)

    admissions, institutions = generate_synthetic_tables(n_institutions=160, random_state=42)
    admissions.to_csv(SYNTHETIC_ADMISSIONS_PATH, index=False)
    institutions.to_csv(SYNTHETIC_INSTITUTIONS_PATH, index=False)

    print(f"Wrote {len(admissions)} rows to {SYNTHETIC_ADMISSIONS_PATH}")
    print(f"Wrote {len(institutions)} rows to {SYNTHETIC_INSTITUTIONS_PATH}")
    print("Institutions:", admissions["super_opeid"].nunique())
    print("Missing cost rate:", round(float(institutions["COSTT4_A"].isna().mean()), 3))


if __name__ == "__main__":
    main()
