"""Domain layer: entities and ports."""
