"""Usage domain: limit evaluation, threshold notifications and ingestion."""
