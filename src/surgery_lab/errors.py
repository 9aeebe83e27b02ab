"""Exceptions raised by the surgery lab core."""


class SurgeryLabError(Exception):
    """Base class for all surgery lab errors."""


class InvalidContext(SurgeryLabError):
    """A decision was submitted for a step or option that cannot be scored."""

    def __init__(self, message: str, step_index: int | None = None, option_index: int | None = None):
        super().__init__(message)
        self.step_index = step_index
        self.option_index = option_index


class MalformedProcedure(SurgeryLabError):
    """A procedure definition cannot be turned into a decision tree."""
