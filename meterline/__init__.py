"""Meterline: usage metering and billing-event reconciliation service."""
