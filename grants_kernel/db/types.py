"""
Module: grants_kernel.db.types
Responsibility: Column type for token amounts and shared column widths for
    addresses, asset identifiers and hashes.  Centralizes the storage representation so that every model
    stores amounts identically.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    CRITICAL: No floats anywhere.  Token amounts are Python ints of arbitrary
    precision.  They are stored as decimal strings because no portable SQL
    numeric type holds a full 256-bit unsigned integer on every backend
    (SQLite stores large NUMERIC values as REAL and loses precision).

Failure modes:
    - TypeError when a non-int (or a bool) is bound to a TokenAmount column.
    - ValueError when a negative amount is bound.
"""

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator

# Number of decimal digits in 2**256 - 1
TOKEN_AMOUNT_DIGITS = 78


class TokenAmount(TypeDecorator):
    """
    Non-negative integer amount stored as a decimal string.

    Guarantees:
        - process_bind_param: int -> str, rejecting floats, bools and negatives.
        - process_result_value: str -> int.
    """

    impl = String(TOKEN_AMOUNT_DIGITS)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(
                f"TokenAmount requires int, got {type(value).__name__}"
            )
        if value < 0:
            raise ValueError(f"TokenAmount cannot be negative: {value}")
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


# Column widths shared by every model
ADDRESS_LENGTH = 128
ASSET_ID_LENGTH = 128
HASH_LENGTH = 64
