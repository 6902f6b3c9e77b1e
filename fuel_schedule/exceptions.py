class FuelScheduleError(Exception):
    """Base class for dashboard errors."""


class MissingSecretError(FuelScheduleError):
    """Raised when required Streamlit secrets are absent."""


class SheetFetchError(FuelScheduleError):
    """Raised when the raw schedule CSV cannot be retrieved."""
