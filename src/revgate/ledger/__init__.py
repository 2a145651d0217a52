"""Balance-holding subsystem — the revenue ledger and fungible balances."""
