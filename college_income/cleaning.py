"""
college_income/cleaning.py

Turns the two raw tables into one profile row per institution:

    admissions --split--> attendance / application views
               --argmax--> dominant income bin per institution (each view)
               --inner join--> one frame with both dominant bins
               --left join on federal id--> + cost, state, minority-serving flags
               --clean names, relevel, flag, drop missing cost, average, collapse-->

Every step takes a DataFrame and returns a new one; nothing is modified in place.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .config import (
    FEATURE_DOMAINS,
    INCOME_BIN_LEVELS,
    INCOME_GROUP_COLLAPSE,
    INCOME_GROUP_LEVELS,
    LABEL_COL,
    MINORITY_SERVING_INDICATORS,
    TIER_ALIASES,
    TIER_LEVELS,
    PipelineConfig,
)
from .errors import JoinKeyMismatch, SchemaMismatch

logger = logging.getLogger(__name__)

JOIN_KEYS = ["super_opeid", "name", "tier_name", "public", "flagship"]

PROFILE_COLUMNS = [
    "name",
    "super_opeid",
    "tier",
    "public",
    "flagship",
    "income_group_attend",
    "income_group_apply",
    "cost",
    "minority_serving",
    "state",
]


# ---------------------------------------------------------------------
# 1-3) Dominant income group per institution
# ---------------------------------------------------------------------

def split_views(admissions: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Return (attendance view, application view), each without the other's rate columns."""
    attendance = admissions.drop(columns=["rel_apply", "stderr_rel_apply"])
    application = admissions.drop(columns=["rel_attend", "stderr_rel_attend"])
    return attendance, application


def dominant_income_group(
    view: pd.DataFrame,
    rate_col: str,
    tie_break: str = "lowest_bin",
) -> pd.DataFrame:
    """
    Keep, per institution, the income-bin row(s) with the highest `rate_col`.

    tie_break
        "lowest_bin" : one row per institution, ties go to the smallest par_income_bin
        "keep_all"   : every tying row survives
    Rows with a missing rate never win.
    """
    rated = view.dropna(subset=[rate_col])
    best = rated.groupby("super_opeid")[rate_col].transform("max")
    winners = rated[rated[rate_col] == best]

    if tie_break == "lowest_bin":
        winners = winners.sort_values(["super_opeid", "par_income_bin"], kind="mergesort")
        winners = winners.drop_duplicates("super_opeid", keep="first")
    elif tie_break != "keep_all":
        raise ValueError(f"Unknown tie_break policy: {tie_break!r}")

    n_ties = len(winners) - winners["super_opeid"].nunique()
    if n_ties:
        logger.info("%s: %d extra rows kept from tied maxima", rate_col, n_ties)
    return winners.reset_index(drop=True)


def join_dominant_views(attendance: pd.DataFrame, application: pd.DataFrame) -> pd.DataFrame:
    """Inner join of the two dominant views; an institution needs a dominant bin in both."""
    merged = attendance.merge(application, on=JOIN_KEYS, how="inner", suffixes=("_attend", "_apply"))
    lost = (set(attendance["super_opeid"]) | set(application["super_opeid"])) - set(merged["super_opeid"])
    if lost:
        logger.info("%d institutions have no matching dominant bin in both views and were dropped", len(lost))
    return merged


# ---------------------------------------------------------------------
# 4) Federal identifier join
# ---------------------------------------------------------------------

def normalize_federal_id(ids: pd.Series) -> pd.Series:
    """'002155', 2155 and 2155.0 all become '2155'."""
    text = ids.astype("string").str.strip()
    text = text.str.replace(r"\.0+$", "", regex=True)
    return text.str.lstrip("0")


def join_institutions(
    profiles: pd.DataFrame,
    institutions: pd.DataFrame,
    min_match_rate: float = 0.5,
) -> pd.DataFrame:
    """
    Left join institution characteristics on the six-digit federal id.

    Raises JoinKeyMismatch if no admissions row finds a partner and logs a
    warning when the matched share falls under `min_match_rate`.
    """
    left = profiles.assign(_federal_id=normalize_federal_id(profiles["super_opeid"]))
    right = institutions.assign(_federal_id=normalize_federal_id(institutions["OPEID6"]))
    right = right[right["_federal_id"].fillna("") != ""]

    merged = left.merge(right, on="_federal_id", how="left", indicator=True)
    matched_ids = merged.loc[merged["_merge"] == "both", "super_opeid"].nunique()
    total_ids = left["super_opeid"].nunique()

    if total_ids == 0 or matched_ids == 0:
        raise JoinKeyMismatch(
            f"No institutions matched between admissions ({total_ids} ids) and "
            f"institutions ({len(institutions)} rows); check the OPEID6 / super_opeid format."
        )

    rate = matched_ids / total_ids
    if rate < min_match_rate:
        logger.warning(
            "Only %d of %d institutions (%.0f%%) matched on federal id",
            matched_ids, total_ids, 100 * rate,
        )
    else:
        logger.info("Matched %d of %d institutions on federal id", matched_ids, total_ids)

    return merged.drop(columns=["_federal_id", "_merge"])


# ---------------------------------------------------------------------
# 5-10) Tidy-up
# ---------------------------------------------------------------------

def clean_names(df: pd.DataFrame) -> pd.DataFrame:
    """Lower snake_case column names ('COSTT4_A' -> 'costt4_a', 'Tier Name' -> 'tier_name')."""
    def _clean(name: str) -> str:
        name = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", str(name)).lower()
        name = re.sub(r"[^0-9a-z]+", "_", name)
        return name.strip("_")

    renamed = {c: _clean(c) for c in df.columns}
    if len(set(renamed.values())) != len(renamed):
        raise SchemaMismatch(f"Column names collide after cleaning: {sorted(renamed.values())}")
    return df.rename(columns=renamed)


def _ordered(values: pd.Series, levels: Sequence[str], column: str) -> pd.Series:
    outside = values.notna() & ~values.isin(list(levels))
    if outside.any():
        unknown = sorted(set(values[outside].astype(str)))
        raise SchemaMismatch(f"Column '{column}' has values outside its domain: {unknown}", columns=[column])
    out = pd.Categorical(values, categories=list(levels), ordered=True)
    return pd.Series(out, index=values.index, name=column)


def relevel(df: pd.DataFrame) -> pd.DataFrame:
    """
    Tier and both income labels become ordered categoricals.

    tier uses the fixed selectivity ranking; the income labels use percentile
    rank order.
    """
    out = df.rename(
        columns={
            "tier_name": "tier",
            "par_income_lab_attend": "income_group_attend",
            "par_income_lab_apply": "income_group_apply",
        }
    )
    out["tier"] = _ordered(out["tier"].replace(TIER_ALIASES), TIER_LEVELS, "tier")
    for c in ("income_group_attend", "income_group_apply"):
        out[c] = _ordered(out[c], INCOME_BIN_LEVELS, c)
    return out


def add_minority_serving(df: pd.DataFrame, indicators: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """minority_serving = any of the five federal designations (missing counts as no)."""
    cols = [c.lower() for c in (indicators or MINORITY_SERVING_INDICATORS)]
    flags = df[cols].apply(pd.to_numeric, errors="coerce").fillna(0) > 0
    return df.assign(minority_serving=flags.any(axis=1))


def drop_missing_cost(df: pd.DataFrame, cost_col: str = "costt4_a") -> pd.DataFrame:
    kept = df[df[cost_col].notna()]
    n_dropped = len(df) - len(kept)
    if n_dropped:
        logger.info("Dropped %d rows without cost of attendance", n_dropped)
    return kept.reset_index(drop=True)


def average_cost(df: pd.DataFrame, cost_col: str = "costt4_a") -> pd.DataFrame:
    """
    Mean cost per institution name, then one row per name.

    Rows are ordered by name and income bin first, so the surviving row is the
    same whatever order the joins produced.
    """
    sort_cols = [c for c in ("name", "par_income_bin_attend", "par_income_bin_apply", "opeid") if c in df.columns]
    ordered = df.sort_values(sort_cols, kind="mergesort")
    ordered = ordered.assign(**{cost_col: ordered.groupby("name")[cost_col].transform("mean")})
    return ordered.drop_duplicates("name", keep="first").reset_index(drop=True)


def collapse_income_group(values: pd.Series) -> pd.Series:
    """Map fine percentile bins onto the five canonical groups (canonical labels map to themselves)."""
    text = values.astype("string")
    unknown = sorted(set(text.dropna()) - set(INCOME_GROUP_COLLAPSE))
    if unknown:
        raise SchemaMismatch(f"Unknown income bins: {unknown}", columns=[values.name])
    collapsed = text.map(INCOME_GROUP_COLLAPSE)
    return pd.Series(
        pd.Categorical(collapsed, categories=list(INCOME_GROUP_LEVELS), ordered=True),
        index=values.index,
        name=values.name,
    )


def collapse_income_groups(df: pd.DataFrame) -> pd.DataFrame:
    return df.assign(
        income_group_attend=collapse_income_group(df["income_group_attend"]),
        income_group_apply=collapse_income_group(df["income_group_apply"]),
    )


# ---------------------------------------------------------------------
# Whole pipeline
# ---------------------------------------------------------------------

def build_profiles(
    admissions: pd.DataFrame,
    institutions: pd.DataFrame,
    config: Optional[PipelineConfig] = None,
) -> pd.DataFrame:
    """Run every cleaning step and return one validated profile row per institution."""
    config = config or PipelineConfig()

    attendance, application = split_views(admissions)
    attendance = dominant_income_group(attendance, "rel_attend", config.tie_break)
    application = dominant_income_group(application, "rel_apply", config.tie_break)

    df = join_dominant_views(attendance, application)
    df = join_institutions(df, institutions, config.min_match_rate)
    df = clean_names(df)
    df = relevel(df)
    df = add_minority_serving(df)
    df = drop_missing_cost(df)
    df = average_cost(df)
    df = collapse_income_groups(df)

    profiles = df.rename(columns={"costt4_a": "cost", "stabbr": "state"})[PROFILE_COLUMNS]
    profiles = profiles.sort_values("name", kind="mergesort").reset_index(drop=True)
    validate_profiles(profiles)

    logger.info(
        "Built %d institution profiles; label counts: %s",
        len(profiles),
        profiles[LABEL_COL].value_counts(sort=False).to_dict(),
    )
    return profiles


def validate_profiles(profiles: pd.DataFrame) -> None:
    """Raise SchemaMismatch if the profile table breaks any of its invariants."""
    problems: List[str] = []

    missing = [c for c in PROFILE_COLUMNS if c not in profiles.columns]
    if missing:
        raise SchemaMismatch(f"Profile table is missing columns: {missing}", columns=missing)

    if profiles["name"].duplicated().any():
        problems.append("more than one row per institution name")
    if not pd.api.types.is_numeric_dtype(profiles["cost"]) or profiles["cost"].isna().any():
        problems.append("cost of attendance must be numeric and non-missing")
    if list(profiles["tier"].cat.categories) != list(TIER_LEVELS):
        problems.append("tier categories differ from the fixed ranking")
    for c in ("income_group_attend", "income_group_apply"):
        if list(profiles[c].cat.categories) != list(INCOME_GROUP_LEVELS):
            problems.append(f"{c} categories differ from the collapsed groups")
    for c in ("tier", "income_group_attend", "income_group_apply"):
        if profiles[c].isna().any():
            problems.append(f"{c} has values outside its domain")
    for c in ("public", "flagship", "minority_serving"):
        if not set(profiles[c].unique()) <= set(FEATURE_DOMAINS[c]):
            problems.append(f"{c} has values outside {FEATURE_DOMAINS[c]}")

    if problems:
        raise SchemaMismatch("Invalid profile table: " + "; ".join(problems))


def feature_frame(
    profiles: pd.DataFrame,
    features: Sequence[str],
    label_col: str = LABEL_COL,
) -> Tuple[pd.DataFrame, pd.Series]:
    """(X, y): the requested feature columns and the dominant attendance group."""
    missing = [c for c in list(features) + [label_col] if c not in profiles.columns]
    if missing:
        raise SchemaMismatch(f"Profile table is missing columns: {missing}", columns=missing)
    return profiles[list(features)].copy(), profiles[label_col].copy()
