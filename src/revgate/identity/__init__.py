"""Identity subsystem — who may attest revenue."""

from revgate.identity.registry import AttestorRegistry

__all__ = ["AttestorRegistry"]
