"""Population engine, customizations and the assignment resolver."""

from .assignment import Assignment, AssignmentResolver, Branch
from .customizations import Action, Customization, CustomizationPlan
from .engine import PopulationEngine, RunState

__all__ = [
    "Action",
    "Assignment",
    "AssignmentResolver",
    "Branch",
    "Customization",
    "CustomizationPlan",
    "PopulationEngine",
    "RunState",
]
