"""Rate limiting adapters.

This package provides a small abstraction layer so local development can run
with an in-memory counter store while production shares window state across
instances through Redis, without changing the service layer.
"""
