"""Exceptions raised by the volume baking core."""


class VolumeBakeError(Exception):
    """Base class for all bake failures."""


class ConfigurationError(VolumeBakeError, ValueError):
    """Invalid noise parameters; raised before any buffer is allocated."""


class ResourceExhaustionError(VolumeBakeError, MemoryError):
    """The requested grid does not fit in the configured memory budget."""

    def __init__(self, required_bytes: int, budget_bytes: int):
        self.required_bytes = required_bytes
        self.budget_bytes = budget_bytes
        super().__init__(
            f"Bake needs {required_bytes} bytes but the budget is {budget_bytes} bytes"
        )


class BakeCancelledError(VolumeBakeError):
    """A bake was cancelled between slices. No partial result exists."""
