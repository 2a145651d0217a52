"""Hash commitments over the audit trail."""
