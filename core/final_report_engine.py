"""
FILE: core/final_report_engine.py
-----------------------------------
Pure logic for assembling the comparison report from every stage output.
No orchestration dependencies.

Responsibilities:
  1. Summarises loading, cleaning and splitting
  2. Renders the RMSEP-vs-K table for each technique (suggested and chosen K marked)
  3. Lists the held-out {method, K, RMSE, R²} records and the better model
  4. Builds caveats from cleaning and split warnings
  5. Generates the markdown string
"""

from pathlib import Path

from Schemas.evaluator import EvaluationResult
from Schemas.final_report import ComponentChoice, FinalReportOutput
from Schemas.trainer import METHOD_LABELS, CrossValidationOutput, RegressionMethod
from core.evaluator_engine import compare_results


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────

def _build_dataset_summary(profiler_output: dict) -> str:
    n_rows = profiler_output.get("n_rows", "?")
    n_cols = profiler_output.get("n_cols", "?")
    summary = f"Loaded {n_rows} rows × {n_cols} columns."
    heavy = [
        c["column"] for c in profiler_output.get("numeric_columns", [])
        if c.get("missing_severity") == "high"
    ]
    if heavy:
        summary += f" Heavily missing fields: {', '.join(heavy)}."
    return summary


def _build_cleaning_summary(preprocessor_output: dict) -> str:
    final_rows = preprocessor_output.get("final_shape", [0, 0])[0]
    dropped = preprocessor_output.get("rows_dropped_total", 0)
    outliers = preprocessor_output.get("rows_dropped_outliers", 0)
    stamps = preprocessor_output.get("rows_dropped_missing_timestamp", 0)
    imputed = sum(c.get("nulls_imputed", 0) for c in preprocessor_output.get("column_logs", []))
    return (
        f"{final_rows} rows after cleaning ({dropped} removed: {stamps} without timestamp, "
        f"{outliers} target outlier(s)). {imputed} missing value(s) mean-imputed."
    )


def _build_split_summary(split_output: dict) -> str:
    summary = (
        f"Train {split_output.get('n_train')} / test {split_output.get('n_test')} rows "
        f"(fraction {split_output.get('train_fraction')}, seed {split_output.get('seed')})"
    )
    if split_output.get("stratified"):
        summary += f", stratified over {split_output.get('n_strata')} target quantile groups."
    else:
        summary += ", plain random split."
    return summary


def render_rmsep_table(cv_output: CrossValidationOutput, chosen: int | None = None) -> str:
    """Markdown RMSEP-vs-K table; the elbow suggestion and the chosen K are flagged."""
    lines = [
        "| K | RMSEP | |",
        "|---:|---:|:---|",
        f"| 0 | {cv_output.intercept_rmsep:.4f} | intercept only |",
    ]
    for score in cv_output.scores:
        marks = []
        if score.n_components == cv_output.suggested_components:
            marks.append("elbow")
        if chosen is not None and score.n_components == chosen:
            marks.append("chosen")
        lines.append(f"| {score.n_components} | {score.rmsep:.4f} | {', '.join(marks)} |")
    return "\n".join(lines)


def _build_caveats(preprocessor_output: dict, split_output: dict, target: str) -> list[str]:
    caveats = [
        f"Outliers were removed on '{target}' only; predictor outliers remain in the data.",
    ]
    caveats.extend(preprocessor_output.get("warnings", []))
    caveats.extend(split_output.get("warnings", []))
    return caveats


def _build_markdown(report: FinalReportOutput) -> str:
    md: list[str] = [f"# {report.title}", ""]
    md += ["## Data", "", report.dataset_summary, "", report.cleaning_summary, "", report.split_summary, ""]

    md += ["## Component selection (cross-validated RMSEP)", ""]
    for choice in report.component_choices:
        label = METHOD_LABELS[RegressionMethod(choice.method)]
        md += [
            f"### {label}",
            "",
            report.rmsep_tables.get(choice.method, ""),
            "",
            f"Suggested K = {choice.suggested_components}; fitted K = {choice.chosen_components} ({choice.source}).",
            "",
        ]
        if choice.method in report.model_interpretations:
            md += [report.model_interpretations[choice.method], ""]

    md += ["## Held-out test results", "", "| Method | K | RMSE | R² |", "|:---|---:|---:|---:|"]
    for r in report.results:
        md.append(f"| {r.method.value.upper()} | {r.n_components} | {r.rmse:.4f} | {r.r_squared:.4f} |")
    if report.best_method:
        md += ["", f"Lower test RMSE: **{report.best_method.upper()}**."]

    if report.caveats:
        md += ["", "## Caveats", ""]
        md += [f"- {c}" for c in report.caveats]

    return "\n".join(md) + "\n"


# ─────────────────────────────────────────────
# MAIN — ASSEMBLE REPORT
# ─────────────────────────────────────────────

def assemble_report(
    csv_path: str,
    target: str,
    profiler_output: dict,
    preprocessor_output: dict,
    split_output: dict,
    cv_outputs: dict[str, dict],
    component_choices: list[dict],
    model_summaries: dict[str, dict],
    evaluation_results: list[dict],
) -> FinalReportOutput:
    """Builds the FinalReportOutput, markdown included."""
    results = [EvaluationResult.model_validate(r) for r in evaluation_results]
    choices = [ComponentChoice.model_validate(c) for c in component_choices]
    chosen_by_method = {c.method: c.chosen_components for c in choices}

    rmsep_tables = {
        method: render_rmsep_table(CrossValidationOutput.model_validate(cv), chosen_by_method.get(method))
        for method, cv in cv_outputs.items()
    }

    report = FinalReportOutput(
        title=f"PCR vs PLS for {target}",
        csv_path=str(csv_path),
        target=target,
        dataset_summary=_build_dataset_summary(profiler_output),
        cleaning_summary=_build_cleaning_summary(preprocessor_output),
        split_summary=_build_split_summary(split_output),
        rmsep_tables=rmsep_tables,
        component_choices=choices,
        model_interpretations={m: s.get("interpretation", "") for m, s in model_summaries.items()},
        results=results,
        best_method=compare_results(results).method.value if results else "",
        caveats=_build_caveats(preprocessor_output, split_output, target),
    )
    report.markdown_report = _build_markdown(report)
    return report


def save_report(report: FinalReportOutput, output_path: str | Path) -> Path:
    """Writes the markdown report; returns the path written."""
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report.markdown_report, encoding="utf-8")
    return path
