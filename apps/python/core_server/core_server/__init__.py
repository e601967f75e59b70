"""Core FastAPI server for the todo tree service."""
