"""Revenue Gate — a governance-gated ledger for attested revenue.

Attested revenue is recorded, time-locked, and released; proposals are
voted on and approved proposals are paid from the treasury. Every
mutation is audited in an append-only log before it reports success.
"""

__version__ = "0.1.0"

from revgate.config import LedgerConfig
from revgate.errors import ErrorCode, LedgerError
from revgate.service import RevenueGateService, ServiceResult

__all__ = [
    "ErrorCode",
    "LedgerConfig",
    "LedgerError",
    "RevenueGateService",
    "ServiceResult",
]
