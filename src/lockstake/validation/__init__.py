"""Validation and invariant checks for the staking ledger."""

from .sanity_checks import InvariantChecker, ValidationWarning, validate_simulation_results

__all__ = [
    "InvariantChecker",
    "ValidationWarning",
    "validate_simulation_results"
]
