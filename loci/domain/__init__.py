"""Domain layer: pure entities, matching algorithms and error taxonomy."""
