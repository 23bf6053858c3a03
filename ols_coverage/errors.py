"""Error types raised by the simulation, fitting and prediction steps."""


class SimulationError(Exception):
    """Base exception for coverage-simulation errors."""
    pass


class InvalidParameterError(SimulationError, ValueError):
    """A distribution or run parameter is outside its valid range."""
    pass


class DegenerateModelError(SimulationError):
    """OLS cannot be identified (too few observations or collinear design)."""
    pass


class SchemaMismatchError(SimulationError, KeyError):
    """New data does not carry a field the model was fitted on."""

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        self.message = message or f"Missing required field: {field!r}"
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message
