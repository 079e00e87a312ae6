"""Reconciliation error taxonomy.

Transport failures are raised by the platform client
(connectors.shopify.TransportError); the errors here describe what the
reconciliation logic concluded from the platform's answers.
"""

from typing import Any, Dict, List, Optional


class ReconciliationError(Exception):
    """Base exception for reconciliation failures."""
    pass


class ResolutionError(ReconciliationError):
    """A canonical or dependent reference does not resolve to a record."""

    def __init__(self, message: str, reference: Optional[str] = None):
        super().__init__(message)
        self.reference = reference


class AdjustmentError(ReconciliationError):
    """The platform rejected an inventory adjustment, partially or fully."""

    def __init__(self, message: str, user_errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.user_errors = user_errors or []


class ConfigWriteError(ReconciliationError):
    """The relations mapping could not be persisted."""

    def __init__(self, message: str, user_errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.user_errors = user_errors or []
