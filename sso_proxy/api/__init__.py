"""HTTP proxy layer (FastAPI)."""
