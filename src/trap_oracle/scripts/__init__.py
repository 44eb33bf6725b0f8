"""Operational scripts for the Trap Oracle service."""
