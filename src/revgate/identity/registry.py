"""Attestor registry — the single identity trusted to attest revenue.

The slot is filled once by initialisation and afterwards only the current
attestor can hand it on. It is never cleared.

Constitutional rule: whoever performs initialisation cannot name
themselves. Without that rule the first caller could grant itself the
attestor role. Rotation has no such restriction; an attestor that
rotates to itself changes nothing.
"""

from __future__ import annotations

from typing import Any, Optional

from revgate.capabilities import AuditSink
from revgate.errors import ErrorCode, LedgerError
from revgate.persistence.event_log import AuditEvent, record_event
from revgate.persistence.transaction import atomic


class AttestorRegistry:
    """Holds the current attestor identity.

    Usage:
        registry = AttestorRegistry()
        registry.initialize("oracle", caller="admin", audit_log=log)
        registry.rotate("oracle-2", caller="oracle", audit_log=log)
        registry.current()   # "oracle-2"
    """

    def __init__(self, attestor: Optional[str] = None) -> None:
        self._attestor = attestor

    def current(self) -> Optional[str]:
        return self._attestor

    def require(self, caller: str) -> str:
        """Check that ``caller`` is the current attestor and return it."""
        if self._attestor is None:
            raise LedgerError(ErrorCode.NOT_INITIALIZED, "No attestor has been initialised")
        if caller != self._attestor:
            raise LedgerError(
                ErrorCode.NOT_AUTHORIZED,
                f"Caller {caller} is not the current attestor",
            )
        return self._attestor

    def initialize(
        self,
        initial_identity: str,
        caller: str,
        audit_log: Optional[AuditSink] = None,
    ) -> None:
        """Fill the empty slot. One time only."""
        if self._attestor is not None:
            raise LedgerError(
                ErrorCode.ALREADY_INITIALIZED,
                f"Attestor already initialised: {self._attestor}",
            )
        if initial_identity == caller:
            raise LedgerError(
                ErrorCode.INVALID_IDENTITY,
                "The initialising caller cannot appoint itself as attestor",
            )
        _require_identity(initial_identity)

        with atomic(self, audit_log):
            if audit_log is not None:
                record_event(audit_log, AuditEvent.ATTESTOR_INITIALIZED, 0, caller)
            self._attestor = initial_identity

    def rotate(
        self,
        new_identity: str,
        caller: str,
        audit_log: Optional[AuditSink] = None,
    ) -> None:
        """Hand the attestor role to ``new_identity``. Current attestor only."""
        self.require(caller)
        _require_identity(new_identity)

        with atomic(self, audit_log):
            if audit_log is not None:
                record_event(audit_log, AuditEvent.ATTESTOR_ROTATED, 0, caller)
            self._attestor = new_identity

    def savepoint(self) -> Any:
        return self._attestor

    def rollback_to(self, savepoint: Any) -> None:
        self._attestor = savepoint

    def to_records(self) -> dict[str, Any]:
        return {"attestor": self._attestor}

    @classmethod
    def from_records(cls, records: dict[str, Any]) -> AttestorRegistry:
        return cls(records.get("attestor"))


def _require_identity(identity: str) -> None:
    if not identity or not identity.strip():
        raise LedgerError(ErrorCode.INVALID_IDENTITY, "Identity must not be blank")
