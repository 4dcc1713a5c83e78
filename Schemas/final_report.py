"""
FILE: Schemas/final_report.py
------------------------------
Pydantic output schema for the final comparison report.
FinalReportOutput carries the report sections, the per-method records
and a markdown rendering for terminal display or saving to disk.
"""

from pydantic import BaseModel, Field

from Schemas.evaluator import EvaluationResult


class ComponentChoice(BaseModel):
    method: str
    suggested_components: int      # elbow of the RMSEP curve
    chosen_components: int         # what was actually fitted
    source: str                    # "configured" | "elbow" | "user"


class FinalReportOutput(BaseModel):
    title:             str = ""
    csv_path:          str = ""
    target:            str = ""

    # ── Pipeline summary ──
    dataset_summary:   str = ""   # rows, columns as loaded
    cleaning_summary:  str = ""   # what the cleaner changed
    split_summary:     str = ""   # train/test sizes, seed, stratification

    # ── Component selection ──
    rmsep_tables:      dict[str, str] = Field(default_factory=dict)   # {method: markdown table}
    component_choices: list[ComponentChoice] = Field(default_factory=list)
    model_interpretations: dict[str, str] = Field(default_factory=dict)

    # ── Core results ──
    results:           list[EvaluationResult] = Field(default_factory=list)
    best_method:       str = ""

    # ── Caveats ──
    caveats:           list[str] = Field(default_factory=list)

    # ── Markdown version (for terminal display / --output) ──
    markdown_report:   str = ""
