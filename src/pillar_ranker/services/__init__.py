"""Services for the scoring engine: retries, storage and reporting."""
