"""HTTP API layer: dependencies and route handlers."""
