# projection/errors.py


class ConfigError(ValueError):
    """A raw input record could not be turned into a Config."""


class ValidationError(ValueError):
    """Aggregate of every validation rule a Config violates."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class SimulationTimeout(RuntimeError):
    """A Monte Carlo batch did not finish before its deadline."""
