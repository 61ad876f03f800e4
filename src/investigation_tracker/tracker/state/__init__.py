"""Persistent state: queue, investigation ledger and worker marker."""
