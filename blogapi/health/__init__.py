"""Health check endpoints."""
