"""Blocked-request log adapters (operational visibility for rejected requests)."""
