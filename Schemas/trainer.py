"""
FILE: Schemas/trainer.py
-------------------------
Pydantic output schemas for cross-validation and model fitting.

  - CrossValidationOutput : RMSEP-vs-K curve for one technique
  - ModelSummary          : the fitted model at the chosen K
"""

from enum import Enum

from pydantic import BaseModel, Field


# ─────────────────────────────────────────────
# ENUMS
# ─────────────────────────────────────────────

class RegressionMethod(str, Enum):
    PCR = "pcr"
    PLS = "pls"


METHOD_LABELS = {
    RegressionMethod.PCR: "Principal Component Regression",
    RegressionMethod.PLS: "Partial Least Squares Regression",
}


# ─────────────────────────────────────────────
# CROSS-VALIDATION CURVE
# ─────────────────────────────────────────────

class ComponentScore(BaseModel):
    n_components: int
    rmsep: float                    # pooled sqrt(PRESS / N) over out-of-fold predictions


class CrossValidationOutput(BaseModel):
    method: RegressionMethod
    cv_folds: int
    seed: int
    n_observations: int
    predictors: list[str] = Field(default_factory=list)
    intercept_rmsep: float          # K = 0 baseline: predict the training-fold mean
    scores: list[ComponentScore] = Field(default_factory=list)
    max_components: int
    suggested_components: int       # elbow heuristic — advisory only

    def rmsep_curve(self) -> list[float]:
        return [s.rmsep for s in self.scores]


# ─────────────────────────────────────────────
# FITTED MODEL SUMMARY
# ─────────────────────────────────────────────

class ComponentSummary(BaseModel):
    component_number: int
    x_variance_pct: float             # % of standardized predictor variance carried by this component
    cumulative_x_variance_pct: float
    cumulative_y_variance_pct: float  # training R² (as %) using components 1..this one
    loadings: dict[str, float] = Field(default_factory=dict)  # {predictor: weight}


class Coefficient(BaseModel):
    variable:    str
    estimate:    float
    std_error:   float | None = None
    t_statistic: float | None = None
    p_value:     float | None = None
    ci_lower:    float | None = None    # 95% confidence interval lower bound
    ci_upper:    float | None = None    # 95% confidence interval upper bound


class ModelSummary(BaseModel):
    method: RegressionMethod
    method_label: str
    n_components: int
    n_observations: int
    predictors: list[str] = Field(default_factory=list)
    components: list[ComponentSummary] = Field(default_factory=list)

    # ── OLS of the target on the component scores ──
    component_coefficients: list[Coefficient] = Field(default_factory=list)

    # ── Effect of each standardized predictor on the prediction ──
    predictor_coefficients: dict[str, float] = Field(default_factory=dict)

    training_rmse: float
    training_r_squared: float
    interpretation: str = ""
