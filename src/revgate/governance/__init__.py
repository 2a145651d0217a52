"""Governance subsystem — proposals and voting."""

from revgate.governance.proposals import ProposalStore
from revgate.governance.voting import VotingTally

__all__ = ["ProposalStore", "VotingTally"]
