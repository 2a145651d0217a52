"""Compensation subsystem — paying approved proposals out of the treasury."""

from revgate.compensation.disbursement import DisbursementOrchestrator, DisbursementRecord

__all__ = [
    "DisbursementOrchestrator",
    "DisbursementRecord",
]
