"""FastAPI application and request dependencies."""
