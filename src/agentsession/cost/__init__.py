"""Cost accounting and estimation."""

from agentsession.cost.estimator import (
    Complexity,
    CostEstimate,
    CostEstimator,
    DocumentSize,
    HistoricalUsage,
)
from agentsession.cost.tracker import (
    ChildSessionCost,
    CostLimitExceededError,
    CostReport,
    CostTracker,
    CostWarning,
    ModelCost,
)

__all__ = [
    "ChildSessionCost",
    "Complexity",
    "CostEstimate",
    "CostEstimator",
    "CostLimitExceededError",
    "CostReport",
    "CostTracker",
    "CostWarning",
    "DocumentSize",
    "HistoricalUsage",
    "ModelCost",
]
