"""Adapters connecting the nestor domain to storage and inbound payloads."""
