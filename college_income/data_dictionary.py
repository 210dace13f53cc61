"""
college_income/data_dictionary.py

Column -> description mapping for the institution profile table.
Shown in the HTML report and the Streamlit dashboard.
"""

DATA_DICTIONARY = {
    "name": "Institution name as published in the admissions data (one row per name).",
    "super_opeid": "Aggregate federal identifier used by the admissions data (OPEID6 without leading zeros).",
    "tier": "Selectivity tier, ordered from Selective private up to Ivy Plus.",
    "public": "1 = public institution, 0 = private.",
    "flagship": "1 = flagship public university.",
    "income_group_attend": "Parental income percentile group with the highest relative attendance rate (model label).",
    "income_group_apply": "Parental income percentile group with the highest relative application rate.",
    "cost": "Average annual cost of attendance in USD (mean over matching Scorecard rows).",
    "minority_serving": "True if the institution holds any of the HBCU, PBI, TRIBAL, AANAPII or HSI designations.",
    "state": "Postal abbreviation of the institution's state.",
    "predicted_group": "Model-predicted dominant attendance income group.",
}
