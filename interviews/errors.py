from __future__ import annotations


class InterviewConfigError(ValueError):
    """
    Raised when a bot configuration cannot drive an interview
    (missing file, no topics, no language, invalid duration).
    """


class GenerationError(RuntimeError):
    """
    Raised when the text generator keeps failing past the retry budget.
    Aborts the current simulated run only.
    """


class InvalidTransitionError(RuntimeError):
    """Raised when the state machine is asked to apply a reply it cannot handle."""
