"""Multi-feed inventory reconciliation and change detection."""
