"""Application layer: cart, catalog snapshot, dashboards, preferences."""
