"""Stock stage models, costs, residuals and dynamics."""

from multishoot.models.activations import (
    ActivationData,
    ActivationModelAbstract,
    ActivationModelQuad,
    ActivationModelQuadraticBarrier,
    ActivationModelWeightedQuad,
)
from multishoot.models.residuals import (
    ResidualData,
    ResidualModelAbstract,
    ResidualModelControl,
    ResidualModelState,
)
from multishoot.models.wrench_cone import ResidualModelWrenchCone, WrenchCone
from multishoot.models.costs import CostData, CostDataSum, CostModelResidual, CostModelSum
from multishoot.models.constraints import ConstraintModelResidual
from multishoot.models.dynamics import (
    AngularVelocityDynamics,
    LinearDynamics,
    PendulumDynamics,
    UnicycleDynamics,
)
from multishoot.models.integrated import IntegratedData, StageModelIntegrated
from multishoot.models.lqr import StageModelLQR
from multishoot.models.numdiff import NumDiffData, StageModelNumDiff

__all__ = [
    "ActivationData",
    "ActivationModelAbstract",
    "ActivationModelQuad",
    "ActivationModelQuadraticBarrier",
    "ActivationModelWeightedQuad",
    "ResidualData",
    "ResidualModelAbstract",
    "ResidualModelControl",
    "ResidualModelState",
    "ResidualModelWrenchCone",
    "WrenchCone",
    "CostData",
    "CostDataSum",
    "CostModelResidual",
    "CostModelSum",
    "ConstraintModelResidual",
    "AngularVelocityDynamics",
    "LinearDynamics",
    "PendulumDynamics",
    "UnicycleDynamics",
    "IntegratedData",
    "StageModelIntegrated",
    "StageModelLQR",
    "NumDiffData",
    "StageModelNumDiff",
]
