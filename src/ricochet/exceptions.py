"""Ricochet exception hierarchy.

Provides a structured exception tree so catch blocks can be specific
and callers can distinguish between different failure modes.
"""

from __future__ import annotations


class RicochetError(Exception):
    """Base for all Ricochet exceptions."""


class ContextError(RicochetError):
    """Context window management failures."""


class CondenseError(ContextError):
    """Summarization-based condensation failed; the transcript is untouched.

    Carries the underlying provider exception (if any) as ``original``.
    """

    def __init__(self, message: str, original: BaseException | None = None):
        super().__init__(message)
        self.original = original


class ModelError(RicochetError):
    """Provider connection, timeout, parse failures."""
