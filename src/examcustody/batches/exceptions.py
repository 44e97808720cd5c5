"""Exceptions for batch and script lifecycle transitions."""

from examcustody.state_store import CustodyError


class BatchTransitionError(CustodyError):
    """Raised when a batch cannot move to the requested status."""


class ScriptTransitionError(CustodyError):
    """Raised when a script cannot move to the requested status."""
