"""
FILE: Schemas/config.py
------------------------
Validated run configuration. Defaults come from constants/;
the CLI fills it from options (file path and seed may also come from
BENZENESTAT_DATA / BENZENESTAT_SEED).
"""

from pydantic import BaseModel, Field, field_validator, model_validator

from constants.loader import DEFAULT_DELIMITER, DEFAULT_TARGET, NUMERIC_COLUMNS
from constants.trainer import DEFAULT_CV_FOLDS, DEFAULT_SEED, DEFAULT_TRAIN_FRACTION


class PipelineConfig(BaseModel):
    csv_path:       str
    delimiter:      str = DEFAULT_DELIMITER
    target:         str = DEFAULT_TARGET
    predictors:     list[str] | None = None      # None → every numeric field except the target
    exclude:        list[str] = Field(default_factory=list)
    seed:           int = DEFAULT_SEED
    train_fraction: float = Field(default=DEFAULT_TRAIN_FRACTION, gt=0, lt=1)
    stratify:       bool = True
    cv_folds:       int = Field(default=DEFAULT_CV_FOLDS, ge=2)
    max_components: int | None = Field(default=None, ge=1)

    # ── Component counts — None means "decide after cross-validation" ──
    pcr_components: int | None = Field(default=None, ge=1)
    pls_components: int | None = Field(default=None, ge=1)
    auto_select:    bool = False                 # accept the elbow suggestion without asking

    @field_validator("target")
    @classmethod
    def _target_is_numeric(cls, v: str) -> str:
        if v not in NUMERIC_COLUMNS:
            raise ValueError(f"target must be one of {NUMERIC_COLUMNS}, got '{v}'")
        return v

    @model_validator(mode="after")
    def _target_not_a_predictor(self):
        if self.predictors is not None and self.target in self.predictors:
            raise ValueError(f"target '{self.target}' cannot also be listed as a predictor")
        return self
