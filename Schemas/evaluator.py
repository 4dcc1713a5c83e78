"""
FILE: Schemas/evaluator.py
---------------------------
Held-out scores for one fitted model. One record per technique:
{method, n_components, rmse, r_squared}.
"""

from pydantic import BaseModel, ConfigDict

from Schemas.trainer import RegressionMethod


class EvaluationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: RegressionMethod
    n_components: int
    rmse: float
    r_squared: float
    n_observations: int
