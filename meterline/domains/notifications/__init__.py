"""Notifications domain: the email outbox written by usage and billing flows."""
