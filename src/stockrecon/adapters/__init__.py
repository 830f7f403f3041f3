"""Adapters between external systems and the reconciliation domain."""
