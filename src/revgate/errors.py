"""Error taxonomy — every failure the ledger can report, as a fixed code.

Components raise LedgerError at the point of violation. The service facade
converts it into a ServiceResult carrying the same code, so callers can
branch on the code instead of parsing message text.

Codes 100-112 match the original deployed contract's error constants so
existing tooling keeps its numeric mapping.
"""

from __future__ import annotations

import enum


class ErrorCode(int, enum.Enum):
    """Numeric failure codes surfaced to callers."""
    NOT_AUTHORIZED = 100
    NOT_FOUND = 101
    INVALID_AMOUNT = 102
    NOT_INITIALIZED = 103
    ALREADY_VOTED = 104
    ALREADY_RECORDED = 105
    NOT_APPROVED = 106
    INSUFFICIENT_BALANCE = 107
    AUDIT_FAILURE = 108
    REVENUE_LOCKED = 109
    INVALID_CURRENCY = 110
    SUPPLY_EXCEEDED = 111
    INVALID_IDENTITY = 112
    ALREADY_INITIALIZED = 113


class LedgerError(ValueError):
    """A domain rule was violated. Nothing was applied."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code

    def __str__(self) -> str:
        return f"{self.code.name}: {self.args[0]}"
