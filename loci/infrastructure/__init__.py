"""Infrastructure layer: catalog connector and cache store."""
