"""
FILE: main.py
--------------
LangGraph orchestrator and command-line entry point for Benzenestat.
Wires the engines into a StateGraph; the component count for each
technique is an explicit decision taken after cross-validation.

Pipeline flow:
  load
      ↓
  profile
      ↓
  clean
      ↓
  split
      ↓
  cross_validate          (RMSEP curve per technique)
      ↓
  choose_components       [interrupt — show RMSEP table, ask for K]
      ↓ if user stops → END
  train
      ↓
  evaluate
      ↓
  report
      ↓ [END]

Human-in-the-loop:
  When a run does not configure K (and auto_select is off), choose_components
  calls interrupt() once per technique with the RMSEP table and the elbow
  suggestion. The caller collects the answer and resumes with
  Command(resume=answer) through resume_benzenestat().

Errors:
  Engines raise; nothing here catches. A failing node stops the graph and
  the exception reaches the caller. The CLI reports it and exits with 1.
"""

import logging
import sys
import uuid
from typing import Any, Optional, TypedDict

import typer
from langgraph.checkpoint.memory import MemorySaver
from langgraph.checkpoint.serde.jsonplus import JsonPlusSerializer
from langgraph.graph import END, StateGraph
from langgraph.types import Command, interrupt

from Schemas.config import PipelineConfig
from Schemas.final_report import FinalReportOutput
from Schemas.trainer import METHOD_LABELS, CrossValidationOutput, RegressionMethod
from constants.loader import DEFAULT_DELIMITER, DEFAULT_TARGET
from constants.trainer import DEFAULT_CV_FOLDS, DEFAULT_SEED, DEFAULT_TRAIN_FRACTION
from core.errors import BenzenestatError
from core.evaluator_engine import evaluate_model
from core.final_report_engine import assemble_report, render_rmsep_table, save_report
from core.loader_engine import load_dataset
from core.preprocessor_engine import clean_dataset
from core.profiler_engine import profile_dataframe
from core.splitter_engine import split_dataset
from core.trainer_engine import cross_validate_components, fit_model, select_predictors

logger = logging.getLogger("benzenestat")


# ─────────────────────────────────────────────
# STATE SCHEMA
# TypedDict — all fields optional, populated as pipeline progresses
# ─────────────────────────────────────────────

class BenzenestatState(TypedDict, total=False):
    # ── Inputs (PipelineConfig fields) ──
    csv_path:        str
    delimiter:       str
    target:          str
    predictors:      list[str] | None
    exclude:         list[str]
    seed:            int
    train_fraction:  float
    stratify:        bool
    cv_folds:        int
    max_components:  int | None
    pcr_components:  int | None
    pls_components:  int | None
    auto_select:     bool

    # ── Working data ──
    raw_df:          Any             # pd.DataFrame, raw strings
    cleaned_df:      Any             # pd.DataFrame
    train_df:        Any             # pd.DataFrame
    test_df:         Any             # pd.DataFrame
    fitted_models:   dict[str, Any]  # {method: fitted sklearn estimator}

    # ── Stage outputs (model_dump() dicts) ──
    profiler_output:     dict
    preprocessor_output: dict
    split_output:        dict
    selected_predictors: list[str]
    cv_outputs:          dict[str, dict]
    component_choices:   list[dict]
    model_summaries:     dict[str, dict]
    evaluation_results:  list[dict]
    report_output:       dict

    # ── Routing flags ──
    fatal_error:     str | None      # set if the user stops the pipeline


STOP_WORDS = ("q", "quit", "stop", "exit")


# ─────────────────────────────────────────────
# NODE FUNCTIONS
# Each node runs one engine and updates state.
# ─────────────────────────────────────────────

def node_load(state: BenzenestatState) -> BenzenestatState:
    """Reads the delimited file as raw strings."""
    raw_df = load_dataset(state["csv_path"], state.get("delimiter", DEFAULT_DELIMITER))
    return {**state, "raw_df": raw_df}


def node_profile(state: BenzenestatState) -> BenzenestatState:
    """Descriptive statistics of the raw file."""
    profiler_output = profile_dataframe(state["raw_df"], state["target"])
    for warning in profiler_output.warnings:
        logger.info("Profile: %s", warning)
    return {**state, "profiler_output": profiler_output.model_dump()}


def node_clean(state: BenzenestatState) -> BenzenestatState:
    """Types, sentinels, imputation, timestamps, target outliers."""
    cleaned_df, preprocessor_output = clean_dataset(state["raw_df"], target=state["target"])
    return {
        **state,
        "cleaned_df":          cleaned_df,
        "preprocessor_output": preprocessor_output.model_dump(),
    }


def node_split(state: BenzenestatState) -> BenzenestatState:
    train_df, test_df, split_output = split_dataset(
        state["cleaned_df"],
        target=state["target"],
        train_fraction=state.get("train_fraction", DEFAULT_TRAIN_FRACTION),
        seed=state.get("seed", DEFAULT_SEED),
        stratify=state.get("stratify", True),
    )
    return {
        **state,
        "train_df":     train_df,
        "test_df":      test_df,
        "split_output": split_output.model_dump(),
    }


def node_cross_validate(state: BenzenestatState) -> BenzenestatState:
    """RMSEP-vs-K curve for both techniques over the training set."""
    predictors = select_predictors(
        state["train_df"],
        state["target"],
        predictors=state.get("predictors"),
        exclude=state.get("exclude"),
    )
    cv_outputs = {}
    for method in RegressionMethod:
        cv_outputs[method.value] = cross_validate_components(
            state["train_df"],
            state["target"],
            predictors,
            method,
            cv_folds=state.get("cv_folds", DEFAULT_CV_FOLDS),
            max_components=state.get("max_components"),
            seed=state.get("seed", DEFAULT_SEED),
        ).model_dump()
    return {**state, "selected_predictors": predictors, "cv_outputs": cv_outputs}


def node_choose_components(state: BenzenestatState) -> BenzenestatState:
    """
    Settles K per technique: configured value, else elbow suggestion when
    auto_select is on, else asks the user through interrupt().
    """
    choices: list[dict] = []

    for method in RegressionMethod:
        cv = CrossValidationOutput.model_validate(state["cv_outputs"][method.value])
        suggested = cv.suggested_components
        configured = state.get(f"{method.value}_components")

        if configured is not None:
            chosen, source = configured, "configured"
        elif state.get("auto_select"):
            chosen, source = suggested, "elbow"
        else:
            error = ""
            while True:
                user_response = interrupt({
                    "message": (
                        f"{error}{METHOD_LABELS[method]} — cross-validated RMSEP "
                        f"({cv.cv_folds} folds, {cv.n_observations} training rows):\n\n"
                        f"{render_rmsep_table(cv)}"
                    ),
                    "prompt":    f"Components for {method.value.upper()}? [Enter = {suggested}, q = stop]",
                    "type":      "choose_components",
                    "method":    method.value,
                    "suggested": suggested,
                    "max":       cv.max_components,
                })
                chosen, stop, error = _resolve_component_choice(user_response, suggested, cv.max_components)
                if stop:
                    return {
                        **state,
                        "fatal_error": f"User stopped pipeline at {method.value.upper()} component selection.",
                    }
                if chosen is not None:
                    break
            source = "user"

        logger.info("%s: K=%d (%s; elbow suggests %d)", method.value.upper(), chosen, source, suggested)
        choices.append({
            "method":               method.value,
            "suggested_components": suggested,
            "chosen_components":    int(chosen),
            "source":               source,
        })

    return {**state, "component_choices": choices}


def node_train(state: BenzenestatState) -> BenzenestatState:
    """Fits each technique on the full training set at its chosen K."""
    summaries: dict[str, dict] = {}
    models: dict[str, Any] = {}
    for choice in state["component_choices"]:
        summary, estimator = fit_model(
            state["train_df"],
            state["target"],
            state["selected_predictors"],
            RegressionMethod(choice["method"]),
            choice["chosen_components"],
        )
        summaries[choice["method"]] = summary.model_dump()
        models[choice["method"]] = estimator
    return {**state, "model_summaries": summaries, "fitted_models": models}


def node_evaluate(state: BenzenestatState) -> BenzenestatState:
    """Scores both fitted models on the held-out test set."""
    results = [
        evaluate_model(
            state["fitted_models"][choice["method"]],
            state["test_df"],
            state["target"],
            state["selected_predictors"],
            RegressionMethod(choice["method"]),
            choice["chosen_components"],
        ).model_dump()
        for choice in state["component_choices"]
    ]
    return {**state, "evaluation_results": results}


def node_report(state: BenzenestatState) -> BenzenestatState:
    report = assemble_report(
        csv_path=state["csv_path"],
        target=state["target"],
        profiler_output=state["profiler_output"],
        preprocessor_output=state["preprocessor_output"],
        split_output=state["split_output"],
        cv_outputs=state["cv_outputs"],
        component_choices=state["component_choices"],
        model_summaries=state["model_summaries"],
        evaluation_results=state["evaluation_results"],
    )
    return {**state, "report_output": report.model_dump()}


# ─────────────────────────────────────────────
# CONDITIONAL EDGE FUNCTIONS
# ─────────────────────────────────────────────

def route_after_component_choice(state: BenzenestatState) -> str:
    if state.get("fatal_error"):
        return END
    return "train"


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────

def _resolve_component_choice(
    user_response: Any,
    suggested: int,
    max_components: int,
) -> tuple[int | None, bool, str]:
    """
    Converts the user's answer to (K, stop, error_message).
    Blank → suggested K; a stop word → stop; anything else must be an
    integer in 1..max_components.
    """
    response = str(user_response if user_response is not None else "").strip().lower()
    if not response:
        return suggested, False, ""
    if response in STOP_WORDS:
        return None, True, ""
    try:
        k = int(response)
    except ValueError:
        return None, False, f"'{response}' is not a number.\n\n"
    if not 1 <= k <= max_components:
        return None, False, f"K must be between 1 and {max_components}.\n\n"
    return k, False, ""


# ─────────────────────────────────────────────
# GRAPH CONSTRUCTION
# ─────────────────────────────────────────────

def build_graph():
    """Builds and compiles the Benzenestat LangGraph pipeline."""
    builder = StateGraph(BenzenestatState)

    # ── Register nodes ──
    builder.add_node("load",              node_load)
    builder.add_node("profile",           node_profile)
    builder.add_node("clean",             node_clean)
    builder.add_node("split",             node_split)
    builder.add_node("cross_validate",    node_cross_validate)
    builder.add_node("choose_components", node_choose_components)
    builder.add_node("train",             node_train)
    builder.add_node("evaluate",          node_evaluate)
    builder.add_node("report",            node_report)

    # ── Entry point ──
    builder.set_entry_point("load")

    # ── Linear edges ──
    builder.add_edge("load",           "profile")
    builder.add_edge("profile",        "clean")
    builder.add_edge("clean",          "split")
    builder.add_edge("split",          "cross_validate")
    builder.add_edge("cross_validate", "choose_components")

    # ── Conditional edge: user may stop at component selection ──
    builder.add_conditional_edges("choose_components", route_after_component_choice)

    builder.add_edge("train",    "evaluate")
    builder.add_edge("evaluate", "report")
    builder.add_edge("report",   END)

    # ── Compile with memory checkpointer for interrupt/resume ──
    # DataFrames and fitted estimators live in state, hence the pickle fallback
    memory = MemorySaver(serde=JsonPlusSerializer(pickle_fallback=True))
    return builder.compile(checkpointer=memory)


# ─────────────────────────────────────────────
# PUBLIC ENTRY POINTS
# ─────────────────────────────────────────────

# Module-level compiled graph — reused across invocations
graph = build_graph()


def _thread(thread_id: str) -> dict:
    return {"configurable": {"thread_id": thread_id}}


def run_benzenestat(
    config: PipelineConfig,
    thread_id: str = "default",
) -> dict[str, Any]:
    """
    Runs the pipeline from the top.

    Returns the state reached: the final state, or the state at the first
    interrupt when a component count has to be chosen. Check
    pending_interrupts(thread_id) and answer with resume_benzenestat().
    """
    initial_state: BenzenestatState = {
        **config.model_dump(),
        "fatal_error": None,
    }
    return graph.invoke(initial_state, config=_thread(thread_id))


def resume_benzenestat(
    user_response: Any,
    thread_id: str = "default",
) -> dict[str, Any]:
    """
    Resumes a paused pipeline with the user's answer ("3", "" for the
    suggestion, "q" to stop). thread_id must match run_benzenestat().
    """
    return graph.invoke(Command(resume=user_response), config=_thread(thread_id))


def pending_interrupts(thread_id: str = "default") -> list[dict]:
    """Payloads of the interrupts the thread is currently paused on."""
    snapshot = graph.get_state(_thread(thread_id))
    return [
        pending.value
        for task in snapshot.tasks
        for pending in task.interrupts
    ]


# ─────────────────────────────────────────────
# CLI
# Usage: benzenestat run AirQualityUCI.csv --seed 42
# ─────────────────────────────────────────────

app = typer.Typer(help="Compare PCR and PLS regression for benzene concentration.")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


@app.command()
def run(
    csv_path: str = typer.Argument(..., envvar="BENZENESTAT_DATA", help="Semicolon-delimited Air Quality file."),
    delimiter: str = typer.Option(DEFAULT_DELIMITER, help="Field delimiter."),
    target: str = typer.Option(DEFAULT_TARGET, help="Numeric field to predict."),
    seed: int = typer.Option(DEFAULT_SEED, envvar="BENZENESTAT_SEED", help="Seed for the split and the CV folds."),
    train_fraction: float = typer.Option(DEFAULT_TRAIN_FRACTION, help="Share of rows used for training."),
    cv_folds: int = typer.Option(DEFAULT_CV_FOLDS, help="Cross-validation folds."),
    max_components: Optional[int] = typer.Option(None, help="Cap on the component counts cross-validated."),
    pcr_components: Optional[int] = typer.Option(None, help="K for PCR (skips the prompt)."),
    pls_components: Optional[int] = typer.Option(None, help="K for PLS (skips the prompt)."),
    exclude: Optional[list[str]] = typer.Option(None, help="Predictor to leave out; repeatable."),
    auto: bool = typer.Option(False, "--auto", help="Accept the elbow suggestion without asking."),
    stratify: bool = typer.Option(True, "--stratify/--no-stratify", help="Stratify the split on the target."),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
    output: Optional[str] = typer.Option(None, help="Also write the markdown report to this path."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Run the full pipeline and print the comparison report."""
    _configure_logging(verbose)
    thread_id = f"cli_{uuid.uuid4().hex}"

    try:
        config = PipelineConfig(
            csv_path=csv_path,
            delimiter=delimiter,
            target=target,
            exclude=exclude or [],
            seed=seed,
            train_fraction=train_fraction,
            stratify=stratify,
            cv_folds=cv_folds,
            max_components=max_components,
            pcr_components=pcr_components,
            pls_components=pls_components,
            auto_select=auto,
        )
        state = run_benzenestat(config, thread_id)

        # ── Handle interrupt loop ──
        while True:
            pending = pending_interrupts(thread_id)
            if not pending:
                break
            interrupt_value = pending[0]
            typer.echo(f"\n{interrupt_value.get('message', '')}\n")
            user_input = typer.prompt(interrupt_value.get("prompt", "Your response:"), default="", show_default=False)
            state = resume_benzenestat(user_input, thread_id)

    except (BenzenestatError, OSError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if state.get("fatal_error"):
        typer.echo(f"\n{state['fatal_error']}", err=True)
        raise typer.Exit(code=1)

    report = FinalReportOutput.model_validate(state["report_output"])
    if as_json:
        typer.echo(report.model_dump_json(indent=2))
    else:
        typer.echo(report.markdown_report)

    if output:
        path = save_report(report, output)
        typer.echo(f"Report saved to: {path}", err=True)


@app.command()
def profile(
    csv_path: str = typer.Argument(..., envvar="BENZENESTAT_DATA"),
    delimiter: str = typer.Option(DEFAULT_DELIMITER),
    target: str = typer.Option(DEFAULT_TARGET),
    as_json: bool = typer.Option(False, "--json"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Profile the raw file without cleaning or fitting anything."""
    _configure_logging(verbose)
    try:
        profiler_output = profile_dataframe(load_dataset(csv_path, delimiter), target)
    except (BenzenestatError, OSError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(profiler_output.model_dump_json(indent=2))
        return

    typer.echo(f"{profiler_output.n_rows} rows × {profiler_output.n_cols} columns\n")
    typer.echo(f"{'column':<16}{'missing %':>10}{'mean':>12}{'std':>12}{'r(target)':>11}")
    for col in profiler_output.numeric_columns:
        r = "" if col.correlation_with_target is None else f"{col.correlation_with_target:.3f}"
        mean = "" if col.mean is None else f"{col.mean:.3f}"
        std = "" if col.std is None else f"{col.std:.3f}"
        typer.echo(f"{col.column:<16}{col.missing_pct * 100:>10.1f}{mean:>12}{std:>12}{r:>11}")
    for warning in profiler_output.warnings:
        typer.echo(f"- {warning}")


if __name__ == "__main__":
    app()
