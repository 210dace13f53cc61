"""
college_income/loader.py

Reads the two raw tables and narrows each to the columns used downstream.

  - admissions   : one row per (institution, parental income bin), from the
                   Opportunity Insights college admissions release
                   (TidyTuesday 2024-09-10 by default)
  - institutions : one row per federal OPEID, College Scorecard layout

Read failures raise DataUnavailable; absent columns raise SchemaMismatch.
There is no retry: a run is a single batch fetch.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Union

import pandas as pd

from .config import ADMISSIONS_COLUMNS, INSTITUTION_COLUMNS, MINORITY_SERVING_INDICATORS
from .errors import DataUnavailable, SchemaMismatch

logger = logging.getLogger(__name__)

Source = Union[str, Path]

_TRUE_STRINGS = {"1", "true", "t", "yes", "y", "public"}
_FALSE_STRINGS = {"0", "false", "f", "no", "n", "private", ""}


def _read_csv(src: Source, **kwargs) -> pd.DataFrame:
    """pandas.read_csv with every read failure mapped to DataUnavailable."""
    if not str(src).startswith(("http://", "https://")) and not Path(src).exists():
        raise DataUnavailable(
            f"Source not found at {src}. "
            "Generate offline data first: python -m college_income.make_synthetic_data"
        )
    try:
        return pd.read_csv(src, low_memory=False, **kwargs)
    except (OSError, UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise DataUnavailable(f"Could not read {src}: {e}") from e


def require_columns(df: pd.DataFrame, columns: List[str], table: str) -> pd.DataFrame:
    """Return df narrowed to `columns` in that order, or raise SchemaMismatch listing all absentees."""
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise SchemaMismatch(f"{table} table is missing columns: {missing}", columns=missing)
    return df[columns].copy()


def coerce_flag(values: pd.Series) -> pd.Series:
    """
    Map a 0/1-like column to integers 0/1.

    Accepts booleans, numbers and the strings used by the public releases
    ("TRUE"/"FALSE", "Public"/"Private"). Anything else raises SchemaMismatch.
    """
    if pd.api.types.is_bool_dtype(values):
        return values.astype(int)
    if pd.api.types.is_numeric_dtype(values):
        return (values.fillna(0) != 0).astype(int)

    text = values.astype(str).str.strip().str.lower()
    text = text.where(values.notna(), "")
    unknown = sorted(set(text) - _TRUE_STRINGS - _FALSE_STRINGS)
    if unknown:
        raise SchemaMismatch(
            f"Column '{values.name}' has non-flag values: {unknown[:5]}", columns=[values.name]
        )
    return text.isin(_TRUE_STRINGS).astype(int)


def load_admissions(source: Source) -> pd.DataFrame:
    """
    Load the admissions / income-mobility table.

    Returns one row per (super_opeid, par_income_bin) with numeric rates and
    0/1 public/flagship flags.
    """
    logger.info("Loading admissions table from %s", source)
    raw = _read_csv(source)
    df = require_columns(raw, ADMISSIONS_COLUMNS, "admissions")

    for c in ("par_income_bin", "rel_attend", "stderr_rel_attend", "rel_apply", "stderr_rel_apply"):
        df[c] = pd.to_numeric(df[c], errors="coerce")
    df["par_income_lab"] = df["par_income_lab"].astype(str).str.strip()
    df["tier_name"] = df["tier_name"].astype(str).str.strip()
    df["public"] = coerce_flag(df["public"])
    df["flagship"] = coerce_flag(df["flagship"])

    dupes = int(df.duplicated(["super_opeid", "par_income_bin"]).sum())
    if dupes:
        logger.warning("Admissions table has %d duplicated (institution, income bin) rows", dupes)

    logger.info(
        "Loaded admissions: %d rows, %d institutions", len(df), df["super_opeid"].nunique()
    )
    return df


def load_institutions(path: Source) -> pd.DataFrame:
    """
    Load the institution characteristics table.

    OPEID / OPEID6 stay strings so their leading zeros survive; cost is coerced
    to numeric (suppressed values become NaN) and the minority-serving
    indicators to 0/1.
    """
    logger.info("Loading institutions table from %s", path)
    raw = _read_csv(path, dtype={"OPEID": str, "OPEID6": str})
    df = require_columns(raw, INSTITUTION_COLUMNS, "institutions")

    df["COSTT4_A"] = pd.to_numeric(df["COSTT4_A"], errors="coerce")
    for c in MINORITY_SERVING_INDICATORS:
        df[c] = (pd.to_numeric(df[c], errors="coerce").fillna(0) > 0).astype(int)

    dupes = int(df["OPEID"].duplicated().sum())
    if dupes:
        logger.warning("Institutions table has %d duplicated OPEID values", dupes)

    n_missing = int(df["COSTT4_A"].isna().sum())
    logger.info(
        "Loaded institutions: %d rows (%d without cost of attendance)", len(df), n_missing
    )
    return df


def describe_table(df: pd.DataFrame) -> dict:
    """Row/column counts and per-column missing rates, for data_schema.json."""
    return {
        "n_rows": int(df.shape[0]),
        "n_cols": int(df.shape[1]),
        "columns": [
            {
                "name": c,
                "dtype": str(df[c].dtype),
                "missing_rate": float(df[c].isna().mean()),
            }
            for c in df.columns
        ],
    }
