"""Infrastructure Layer - external provider integrations."""
