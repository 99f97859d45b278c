"""HTTP API for Modular Health."""
