"""
app/streamlit_app.py

A Streamlit dashboard over the artifacts written by `python -m college_income.train`:
  - model comparison (in-sample vs cross-validated accuracy)
  - styled confusion matrices and per-fold accuracy of each model
  - fitted class priors and conditional tables of the deployed model
  - exploratory charts over the cleaned institution profiles
  - scoring of an uploaded table of institutions with the saved model
"""

import json
from pathlib import Path

import pandas as pd
import streamlit as st

from college_income.config import CONTINUOUS_FEATURES
from college_income.data_dictionary import DATA_DICTIONARY
from college_income.evaluate import ConfusionSummary
from college_income.inference import load_bundle, score, validate_features
from college_income.report import EXPLORATORY_CHARTS, style_confusion


# ---------------------------------------------------------------------
# Streamlit page configuration
# ---------------------------------------------------------------------
st.set_page_config(
    page_title="College Income Group Dashboard",
    layout="wide",
)
st.title("🎓 Dominant Parental Income Group of U.S. Colleges")

ART = Path("artifacts")


# ---------------------------------------------------------------------
# Caching helpers
# ---------------------------------------------------------------------
@st.cache_resource
def get_bundle():
    """Load model + features once per session (unless code changes)."""
    return load_bundle(ART)


@st.cache_data
def get_metrics() -> dict:
    return json.loads((ART / "metrics.json").read_text())


@st.cache_data
def get_profiles() -> pd.DataFrame:
    return pd.read_csv(ART / "profiles.csv")


# ---------------------------------------------------------------------
# Load artifacts (fail fast with useful instructions)
# ---------------------------------------------------------------------
try:
    bundle = get_bundle()
    metrics = get_metrics()
    profiles = get_profiles()
    st.success(f"✅ Model {metrics['selected_model']} loaded ({' + '.join(bundle.features)}).")
except Exception as e:
    st.warning(
        "No artifacts found. Run `python -m college_income.make_synthetic_data` "
        "and `python -m college_income.train --synthetic` first."
    )
    st.code(str(e))
    st.stop()


# ---------------------------------------------------------------------
# Sidebar controls
# ---------------------------------------------------------------------
st.sidebar.header("Controls")

model_names = list(metrics["models"])
shown_model = st.sidebar.selectbox(
    "Model to inspect",
    options=model_names,
    index=model_names.index(metrics["selected_model"]),
    help="Feature subset whose confusion matrices are shown.",
)
as_percent = st.sidebar.checkbox("Row percentages", value=False)

max_rows = st.sidebar.slider(
    "Max rows to score",
    min_value=50,
    max_value=5000,
    value=500,
    step=50,
    help="Limits the number of rows processed for performance.",
)


# ---------------------------------------------------------------------
# Model comparison
# ---------------------------------------------------------------------
st.subheader("Model comparison")

comparison = pd.DataFrame(
    [
        {
            "model": name,
            "features": " + ".join(m["features"]),
            "in_sample_accuracy": m["in_sample"]["accuracy"],
            "cv_accuracy": m["cross_validation"]["confusion"]["accuracy"],
        }
        for name, m in metrics["models"].items()
    ]
).set_index("model")
st.dataframe(comparison.style.format({"in_sample_accuracy": "{:.3f}", "cv_accuracy": "{:.3f}"}))
st.caption("In-sample accuracy measures fit on the training rows; CV accuracy pools held-out predictions.")

model_metrics = metrics["models"][shown_model]
col1, col2 = st.columns(2)
with col1:
    st.markdown(f"**Model {shown_model}: in-sample**")
    st.dataframe(style_confusion(ConfusionSummary.from_dict(model_metrics["in_sample"]), percent=as_percent))
with col2:
    cv = model_metrics["cross_validation"]
    st.markdown(f"**Model {shown_model}: {cv['n_splits']}-fold CV (seed {cv['seed']})**")
    st.dataframe(style_confusion(ConfusionSummary.from_dict(cv["confusion"]), percent=as_percent))

st.markdown("**Per-fold accuracy**")
st.bar_chart(pd.Series(cv["fold_accuracy"], index=range(1, len(cv["fold_accuracy"]) + 1), name="accuracy"))

with st.expander(f"Fitted parameters of the deployed model ({metrics['selected_model']})"):
    st.markdown("**Class priors**")
    st.dataframe(bundle.model.priors().to_frame().style.format("{:.3f}"))
    for feature, table in bundle.model.conditional_tables().items():
        caption = "mean / sd per class" if feature in CONTINUOUS_FEATURES else "P(value | class)"
        st.markdown(f"**{feature}**: {caption}")
        st.dataframe(table.style.format("{:.3f}"))


# ---------------------------------------------------------------------
# Exploration
# ---------------------------------------------------------------------
st.subheader("Exploration")
chart_cols = st.columns(len(EXPLORATORY_CHARTS))
for col, (name, plot) in zip(chart_cols, EXPLORATORY_CHARTS.items()):
    with col:
        st.pyplot(plot(profiles))

with st.expander("Column descriptions"):
    st.table(pd.Series(DATA_DICTIONARY, name="description"))


# ---------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------
st.subheader("Upload CSV for scoring")
st.caption(f"Required columns: {bundle.features}")

file = st.file_uploader("Upload a CSV", type="csv")

if file:
    df = pd.read_csv(file)
else:
    st.info("No file uploaded. Scoring artifacts/profiles.csv.")
    df = profiles.copy()

if len(df) == 0:
    st.warning("No rows available to score.")
    st.stop()

df = df.head(max_rows)

try:
    X, warnings = validate_features(df, bundle.features)
    for w in warnings:
        st.warning(w)
except Exception as e:
    st.error("Input data failed validation.")
    st.code(str(e))
    st.stop()

scored = score(df, bundle)
out = df.join(scored)

st.dataframe(out, use_container_width=True)
st.download_button(
    "Download scored CSV",
    data=out.to_csv(index=False).encode("utf-8"),
    file_name="scored.csv",
    mime="text/csv",
)

if "income_group_attend" in out.columns:
    hit_rate = float((out["income_group_attend"].astype(str) == out["predicted_group"].astype(str)).mean())
    st.metric("Agreement with recorded group (in-sample when scoring profiles.csv)", f"{hit_rate:.1%}")

st.subheader("Predicted group counts")
st.write(out["predicted_group"].value_counts())
