"""Outbound per-product usage webhook adapters."""
