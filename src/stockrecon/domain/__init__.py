"""Domain layer: model, identity normalization and reconciliation."""
