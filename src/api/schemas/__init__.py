"""Pydantic models for the error envelope and request validation."""
