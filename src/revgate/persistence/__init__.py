"""Persistence layer — audit log, atomic units, and state snapshots."""
