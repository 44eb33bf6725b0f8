"""HTTP API for the Trap Oracle service."""
