"""Billing domain: usage reporting and provider webhook reconciliation."""
