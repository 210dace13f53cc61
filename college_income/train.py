"""
college_income/train.py

Runs the whole analysis and saves artifacts for the report and the dashboard:

    load -> clean -> explore -> model -> evaluate -> report

Artifacts (artifacts/ by default)
---------------------------------
      model.pkl          selected MixedNaiveBayes, refit on all institutions
      features.json      feature columns of the selected model
      metrics.json       in-sample and cross-validated results for every model
      config.json        run settings (seed, folds, tie-break, variance floor)
      data_schema.json   columns / missing rates of the raw and cleaned tables
      profiles.csv       cleaned one-row-per-institution table
      report.html        charts + styled tables
      figures/*.png

Run (public data)
-----------------
python -m college_income.train --institutions data/Most-Recent-Cohorts-Institution.csv

Run (offline)
-------------
python -m college_income.make_synthetic_data
python -m college_income.train --synthetic
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Dict, Optional, Sequence

import joblib

from .cleaning import build_profiles, feature_frame
from .config import (
    DEFAULT_ADMISSIONS_SOURCE,
    DEFAULT_INSTITUTIONS_PATH,
    SYNTHETIC_ADMISSIONS_PATH,
    SYNTHETIC_INSTITUTIONS_PATH,
    TIE_BREAK_POLICIES,
    PipelineConfig,
)
from .evaluate import compare_models, in_sample_confusion, select_best, summary_frame
from .loader import describe_table, load_admissions, load_institutions
from .naive_bayes import MODEL_SPECS, fit_model
from .report import render_report

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Classify colleges by dominant parental income group with Naive Bayes."
    )
    parser.add_argument(
        "--admissions",
        type=str,
        default=DEFAULT_ADMISSIONS_SOURCE,
        help="URL or path of the admissions / income-mobility CSV.",
    )
    parser.add_argument(
        "--institutions",
        type=str,
        default=str(DEFAULT_INSTITUTIONS_PATH),
        help="Path to the College Scorecard institution CSV.",
    )
    parser.add_argument(
        "--synthetic",
        action="store_true",
        help="Use the offline tables written by college_income.make_synthetic_data.",
    )
    parser.add_argument(
        "--artifact-dir",
        type=str,
        default="artifacts",
        help="Where to write model, metrics and report.",
    )
    parser.add_argument(
        "--n-splits",
        type=int,
        default=10,
        help="Number of cross-validation folds.",
    )
    parser.add_argument(
        "--random-state",
        type=int,
        default=42,
        help="Seed controlling the fold assignment.",
    )
    parser.add_argument(
        "--tie-break",
        type=str,
        choices=TIE_BREAK_POLICIES,
        default="lowest_bin",
        help="How to resolve income bins tied for the maximum rate.",
    )
    parser.add_argument(
        "--min-variance",
        type=float,
        default=1e-6,
        help="Floor on per-class variance of continuous features.",
    )
    parser.add_argument(
        "--variance-ddof",
        type=int,
        choices=[0, 1],
        default=1,
        help="Delta degrees of freedom for per-class variance (1 = sample variance).",
    )
    parser.add_argument(
        "--models",
        type=str,
        nargs="+",
        choices=sorted(MODEL_SPECS),
        default=["A", "B", "C"],
        help="Feature subsets to compare.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Logging level (DEBUG shows per-fold accuracy).",
    )
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> PipelineConfig:
    admissions, institutions = args.admissions, args.institutions
    if args.synthetic:
        admissions, institutions = str(SYNTHETIC_ADMISSIONS_PATH), str(SYNTHETIC_INSTITUTIONS_PATH)
    return PipelineConfig(
        admissions_source=admissions,
        institutions_path=institutions,
        artifact_dir=args.artifact_dir,
        n_splits=args.n_splits,
        random_state=args.random_state,
        tie_break=args.tie_break,
        min_variance=args.min_variance,
        variance_ddof=args.variance_ddof,
        model_names=tuple(args.models),
    )


def run(config: PipelineConfig) -> Dict:
    """Execute every stage in order and write artifacts; returns the metrics dict."""
    artifact_dir = Path(config.artifact_dir)
    artifact_dir.mkdir(parents=True, exist_ok=True)

    # -----------------------------
    # 1) Load
    # -----------------------------
    admissions = load_admissions(config.admissions_source)
    institutions = load_institutions(config.institutions_path)

    # -----------------------------
    # 2) Clean
    # -----------------------------
    profiles = build_profiles(admissions, institutions, config)

    # -----------------------------
    # 3) Model (in-sample fit)
    # -----------------------------
    models = {}
    in_sample = {}
    for name in config.model_names:
        spec = MODEL_SPECS[name]
        models[name] = fit_model(profiles, spec, config)
        X, y = feature_frame(profiles, spec.features)
        in_sample[name] = in_sample_confusion(models[name], X, y)

    # -----------------------------
    # 4) Evaluate (held-out)
    # -----------------------------
    cv_results = compare_models(profiles, config)
    best_name = select_best(cv_results)
    best_spec = MODEL_SPECS[best_name]
    logger.info("Selected model %s with CV accuracy %.4f", best_name, cv_results[best_name].accuracy)

    metrics = {
        "n_institutions": int(len(profiles)),
        "selected_model": best_name,
        "selected_features": list(best_spec.features),
        "models": {
            name: {
                "features": list(MODEL_SPECS[name].features),
                "in_sample": in_sample[name].to_dict(),
                "cross_validation": cv_results[name].to_dict(),
            }
            for name in config.model_names
        },
    }

    # -----------------------------
    # 5) Save artifacts + report
    # -----------------------------
    joblib.dump(models[best_name], artifact_dir / "model.pkl")
    (artifact_dir / "features.json").write_text(json.dumps(list(best_spec.features), indent=2))
    (artifact_dir / "metrics.json").write_text(json.dumps(metrics, indent=2))
    (artifact_dir / "config.json").write_text(json.dumps(config.to_dict(), indent=2))

    schema = {
        "admissions": describe_table(admissions),
        "institutions": describe_table(institutions),
        "profiles": describe_table(profiles),
    }
    (artifact_dir / "data_schema.json").write_text(json.dumps(schema, indent=2))
    profiles.to_csv(artifact_dir / "profiles.csv", index=False)

    report_path = render_report(
        profiles,
        models,
        in_sample,
        cv_results,
        best_name,
        artifact_dir,
        run_config=config.to_dict(),
    )
    metrics["report_path"] = str(report_path)
    metrics["summary"] = summary_frame(cv_results, in_sample)
    return metrics


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = config_from_args(args)
    metrics = run(config)

    best = metrics["selected_model"]
    best_cv = metrics["models"][best]["cross_validation"]
    print("Training complete.")
    print(f"Saved artifacts to: {Path(config.artifact_dir).resolve()}")
    print(metrics["summary"].to_string(float_format=lambda v: f"{v:.4f}"))
    print(
        f"Selected model {best} ({' + '.join(metrics['selected_features'])}) | "
        f"{best_cv['n_splits']}-fold CV accuracy={best_cv['confusion']['accuracy']:.4f} "
        f"| seed={best_cv['seed']}"
    )


if __name__ == "__main__":
    main()
