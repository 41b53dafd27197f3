"""External API connectors."""
