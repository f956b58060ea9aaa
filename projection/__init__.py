# projection/__init__.py
from .errors import ConfigError, SimulationTimeout, ValidationError
from .models import (
    BucketSettings,
    Config,
    DynamicPolicy,
    EventType,
    HistoryPoint,
    LifeEvent,
    Result,
    SimulationRange,
    WithdrawalStrategy,
    YearMonth,
)
from .projector import project, run_projection
from .monte_carlo import SimulationKind, project_simulation, run_monte_carlo
from .validation import validate_config

__all__ = [
    "BucketSettings",
    "Config",
    "ConfigError",
    "DynamicPolicy",
    "EventType",
    "HistoryPoint",
    "LifeEvent",
    "Result",
    "SimulationKind",
    "SimulationRange",
    "SimulationTimeout",
    "ValidationError",
    "WithdrawalStrategy",
    "YearMonth",
    "project",
    "project_simulation",
    "run_monte_carlo",
    "run_projection",
    "validate_config",
]
