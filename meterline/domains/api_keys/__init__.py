"""API key domain: verification of tenant API keys."""
