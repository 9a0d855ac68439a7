# storefront/domain/errors.py


class StorefrontError(Exception):
    """Base class for every error the storefront core raises on purpose."""


class ValidationError(StorefrontError, ValueError):
    """Bad input (quantity, phone, blank field, foreign parameter id).

    Raised before anything is written.
    """


class NotFoundError(StorefrontError, LookupError):
    """Unknown cart, line, product, special or order id."""


class StateConflictError(StorefrontError, RuntimeError):
    """The entity exists but is in a state that forbids the operation.

    e.g. mutating a checked-out cart or removing one line of a bundle.
    """


class ConcurrencyConflictError(StateConflictError):
    """Another operation changed the cart first (version mismatch or busy lock)."""
