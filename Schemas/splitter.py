"""
FILE: Schemas/splitter.py
--------------------------
Pydantic output schema for the train/test partition.
"""

from pydantic import BaseModel, Field


class SplitOutput(BaseModel):
    n_total: int
    n_train: int
    n_test: int
    train_fraction: float
    seed: int
    stratified: bool                  # False when the split fell back to a plain permutation
    n_strata: int = 0
    train_target_mean: float | None = None
    test_target_mean: float | None = None
    warnings: list[str] = Field(default_factory=list)
