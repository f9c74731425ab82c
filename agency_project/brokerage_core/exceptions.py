"""
Workflow errors raised by the service layer.

Malformed input uses django.core.exceptions.ValidationError and capability
failures use django.core.exceptions.PermissionDenied; everything below is a
business-rule failure the caller can act on.
"""


class BrokerageError(Exception):
    """Base class for every workflow error."""
    pass


class NotFound(BrokerageError):
    """Raised when a referenced record does not exist."""
    pass


class Conflict(BrokerageError):
    """Raised when the record's current state forbids the operation."""
    pass


class InvalidTransition(Conflict):
    """Raised when a status change is not allowed by the state machine."""

    def __init__(self, entity, current, target):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"{entity}: cannot go from {current} to {target}")


class InsufficientBalance(BrokerageError):
    """Raised when a partner balance would drop below zero."""
    pass


class DuplicateKey(BrokerageError):
    """Raised when a unique key (invoice number) cannot be generated."""
    pass


class GatewayError(BrokerageError):
    """Raised when the payment gateway rejects or cannot process a charge."""
    pass
