"""TaxAssist HTTP API (FastAPI)."""
