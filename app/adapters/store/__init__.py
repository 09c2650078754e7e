"""Durable waitlist store adapters."""
