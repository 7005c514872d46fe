"""Error taxonomy for the fulfillment and inventory services.

- PostingValidationError and subclasses: the caller can fix the input.
  Raised before anything is written, or inside the posting transaction so the
  whole posting rolls back.
- ConsistencyError: the ledger would break an invariant (race or bug).
- StorageError: whatever the database layer raises. Never wrapped.
"""

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import DatabaseError

StorageError = DatabaseError


class PostingValidationError(ValidationError):
    default_code = "invalid"

    def __init__(self, message, code=None, params=None):
        super().__init__(message, code=code or self.default_code, params=params)


class EmptySelection(PostingValidationError):
    default_code = "empty_selection"

    def __init__(self, message="Select at least one line with a quantity greater than zero."):
        super().__init__(message)


class NonPositiveQuantity(PostingValidationError):
    default_code = "non_positive_quantity"

    def __init__(self, qty, what="Quantity"):
        self.qty = qty
        super().__init__(f"{what} must be greater than zero (got {qty}).")


class ExcessPrecision(PostingValidationError):
    default_code = "excess_precision"

    def __init__(self, qty, what="Quantity", places=3):
        self.qty = qty
        self.places = places
        super().__init__(f"{what} {qty} has more than {places} decimal places.")


class MissingWarehouse(PostingValidationError):
    default_code = "missing_warehouse"

    def __init__(self, role="primary"):
        self.role = role
        super().__init__(f"A {role} warehouse is required.")


class InsufficientQuantity(PostingValidationError):
    default_code = "insufficient_quantity"

    def __init__(self, line, requested: Decimal, remaining: Decimal):
        self.line = line
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Line {line.line_no} ({line.item}): requested {requested} EA "
            f"but only {remaining} EA remain to fulfill."
        )


class InvalidPhysicalStatus(PostingValidationError):
    default_code = "invalid_physical_status"


class DocumentMismatch(PostingValidationError):
    default_code = "document_mismatch"


class ConsistencyError(Exception):
    """Posting would over-fulfill a line. Aborts the whole transaction."""

    def __init__(self, line, linked: Decimal):
        self.line = line
        self.linked = linked
        super().__init__(
            f"Line {line.pk}: linked quantity {linked} exceeds ordered quantity {line.qty_ordered}."
        )
