"""Pydantic models for remote Confluence content and local import state."""
