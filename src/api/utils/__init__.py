"""Utility modules for API-specific functionality.

- **responses**: JSON response class using orjson
- **request**: Access to per-request context, settings and client address
"""
