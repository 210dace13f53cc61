import warnings

import numpy as np
import pandas as pd
import pytest

from college_income.cleaning import (
    PROFILE_COLUMNS,
    build_profiles,
    clean_names,
    collapse_income_group,
    dominant_income_group,
    feature_frame,
    join_institutions,
    normalize_federal_id,
    relevel,
    split_views,
    validate_profiles,
)
from college_income.config import INCOME_BIN_LEVELS, INCOME_GROUP_LEVELS, TIER_LEVELS, PipelineConfig
from college_income.errors import JoinKeyMismatch, SchemaMismatch


def test_split_views_drops_the_other_rate(small_admissions):
    attendance, application = split_views(small_admissions)
    assert "rel_apply" not in attendance.columns and "rel_attend" in attendance.columns
    assert "rel_attend" not in application.columns and "rel_apply" in application.columns
    assert len(attendance) == len(application) == len(small_admissions)


def test_dominant_group_lowest_bin_breaks_ties(small_admissions):
    attendance, _ = split_views(small_admissions)
    winners = dominant_income_group(attendance, "rel_attend", "lowest_bin").set_index("name")

    assert winners["super_opeid"].is_unique
    assert winners.loc["Beta State", "par_income_lab"] == "20-40"
    assert winners.loc["Alpha College", "par_income_lab"] == "Top 0.1"


def test_dominant_group_keep_all_retains_ties(small_admissions):
    attendance, _ = split_views(small_admissions)
    winners = dominant_income_group(attendance, "rel_attend", "keep_all")
    beta = winners[winners["name"] == "Beta State"]
    assert sorted(beta["par_income_lab"]) == ["20-40", "40-60"]


def test_dominant_group_ignores_missing_rates(small_admissions):
    _, application = split_views(small_admissions)
    winners = dominant_income_group(application, "rel_apply").set_index("name")
    assert winners.loc["Gamma Private", "par_income_lab"] == "70-80"


def test_dominant_group_rejects_unknown_policy(small_admissions):
    attendance, _ = split_views(small_admissions)
    with pytest.raises(ValueError):
        dominant_income_group(attendance, "rel_attend", "random")


def test_normalize_federal_id_strips_zeros_and_float_suffix():
    ids = pd.Series(["002155", "2155", "2155.0"])
    assert normalize_federal_id(ids).tolist() == ["2155"] * 3
    assert normalize_federal_id(pd.Series([2155, 100])).tolist() == ["2155", "100"]


def test_join_institutions_without_matches_raises(small_admissions, small_institutions):
    unrelated = small_institutions.assign(OPEID6=["900001", "900002", "900003", "900004", "900005", "900006"])
    with pytest.raises(JoinKeyMismatch):
        join_institutions(small_admissions, unrelated)


def test_join_institutions_low_match_rate_warns(small_admissions, small_institutions, caplog):
    only_alpha = small_institutions[small_institutions["OPEID6"] == "000100"]
    merged = join_institutions(small_admissions, only_alpha, min_match_rate=0.5)
    assert "matched on federal id" in caplog.text
    assert merged["COSTT4_A"].notna().sum() == 3


def test_clean_names():
    df = pd.DataFrame(columns=["COSTT4_A", "Tier Name", "superOpeid", "par_income_lab_attend"])
    assert list(clean_names(df).columns) == ["costt4_a", "tier_name", "super_opeid", "par_income_lab_attend"]


def test_collapse_is_idempotent():
    fine = pd.Series(
        ["0-20", "20-40", "40-60", "60-70", "70-80", "80-90", "90-95", "99-99.9", "Top 0.1"],
        name="income_group_attend",
    )
    once = collapse_income_group(fine)
    twice = collapse_income_group(once)

    assert once.tolist() == ["0-20", "20-60", "20-60", "60-90", "60-90", "60-90", "90-99.9", "90-99.9", "Top 1"]
    pd.testing.assert_series_equal(once, twice)
    assert list(once.cat.categories) == list(INCOME_GROUP_LEVELS)


def test_collapse_rejects_unknown_bins():
    with pytest.raises(SchemaMismatch):
        collapse_income_group(pd.Series(["0-20", "50-55"], name="income_group_attend"))


def test_build_profiles_small(small_admissions, small_institutions):
    profiles = build_profiles(small_admissions, small_institutions, PipelineConfig())

    assert list(profiles.columns) == PROFILE_COLUMNS
    assert profiles["name"].tolist() == ["Alpha College", "Beta State", "Gamma Private"]

    by_name = profiles.set_index("name")
    assert by_name.loc["Alpha College", "income_group_attend"] == "Top 1"
    assert by_name.loc["Alpha College", "income_group_apply"] == "90-99.9"
    assert by_name.loc["Beta State", "income_group_attend"] == "20-60"
    assert by_name.loc["Gamma Private", "income_group_attend"] == "60-90"
    # two Scorecard rows share Beta's OPEID6
    assert by_name.loc["Beta State", "cost"] == pytest.approx(26000.0)
    assert bool(by_name.loc["Beta State", "minority_serving"]) is True
    assert bool(by_name.loc["Alpha College", "minority_serving"]) is False
    assert by_name.loc["Beta State", "state"] == "TX"


def test_top_one_percent_bin_can_be_dominant(small_admissions, small_institutions):
    relabelled = small_admissions.replace({"par_income_lab": {"Top 0.1": "Top 1"}})
    profiles = build_profiles(relabelled, small_institutions)

    by_name = profiles.set_index("name")
    assert by_name.loc["Alpha College", "income_group_attend"] == "Top 1"
    assert by_name.loc["Alpha College", "income_group_apply"] == "90-99.9"


def test_fine_bins_are_ranked_with_top_one_last():
    assert INCOME_BIN_LEVELS[-2:] == ("Top 0.1", "Top 1")
    ranked = relevel(pd.DataFrame({
        "tier_name": ["Ivy Plus", "Ivy Plus"],
        "par_income_lab_attend": ["Top 1", "99-99.9"],
        "par_income_lab_apply": ["Top 0.1", "Top 1"],
    }))
    assert ranked["income_group_attend"].cat.codes.tolist() == [13, 11]
    assert ranked["income_group_apply"].cat.codes.tolist() == [12, 13]
    assert ranked["income_group_attend"].max() == "Top 1"


def test_unknown_tier_is_rejected_before_categorical_conversion():
    frame = pd.DataFrame({
        "tier_name": ["Community college"],
        "par_income_lab_attend": ["0-20"],
        "par_income_lab_apply": ["0-20"],
    })
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        with pytest.raises(SchemaMismatch, match="Community college"):
            relevel(frame)


def test_institution_without_cost_is_excluded(small_admissions, small_institutions):
    profiles = build_profiles(small_admissions, small_institutions)
    assert "Delta University" not in set(profiles["name"])


def test_keep_all_still_yields_one_row_per_institution(small_admissions, small_institutions):
    profiles = build_profiles(small_admissions, small_institutions, PipelineConfig(tie_break="keep_all"))
    assert profiles["name"].is_unique
    assert profiles.set_index("name").loc["Beta State", "income_group_attend"] == "20-60"


def test_unknown_tier_is_a_schema_mismatch(small_admissions, small_institutions):
    bad = small_admissions.replace({"tier_name": {"Ivy Plus": "Ivy League-ish"}})
    with pytest.raises(SchemaMismatch):
        build_profiles(bad, small_institutions)


def test_short_tier_alias_is_accepted(small_admissions, small_institutions):
    aliased = small_admissions.replace({"tier_name": {"Ivy Plus": "Other elite schools"}})
    profiles = build_profiles(aliased, small_institutions)
    assert profiles.set_index("name").loc["Alpha College", "tier"] == TIER_LEVELS[4]


def test_synthetic_profiles_respect_domains(synthetic_profiles):
    profiles = synthetic_profiles
    assert len(profiles) > 50
    assert profiles["name"].is_unique
    assert profiles["cost"].notna().all()
    assert pd.api.types.is_numeric_dtype(profiles["cost"])
    assert list(profiles["tier"].cat.categories) == list(TIER_LEVELS)
    assert profiles["tier"].cat.ordered
    assert set(profiles["income_group_attend"].astype(str)) <= set(INCOME_GROUP_LEVELS)
    assert set(profiles["minority_serving"].unique()) <= {True, False}


def test_validate_profiles_catches_duplicates(synthetic_profiles):
    doubled = pd.concat([synthetic_profiles, synthetic_profiles.head(1)], ignore_index=True)
    with pytest.raises(SchemaMismatch):
        validate_profiles(doubled)


def test_validate_profiles_catches_missing_cost(synthetic_profiles):
    broken = synthetic_profiles.copy()
    broken.loc[0, "cost"] = np.nan
    with pytest.raises(SchemaMismatch):
        validate_profiles(broken)


def test_feature_frame(synthetic_profiles):
    X, y = feature_frame(synthetic_profiles, ["cost", "tier"])
    assert list(X.columns) == ["cost", "tier"]
    assert y.name == "income_group_attend"
    assert len(X) == len(y) == len(synthetic_profiles)

    with pytest.raises(SchemaMismatch):
        feature_frame(synthetic_profiles, ["cost", "enrollment"])
