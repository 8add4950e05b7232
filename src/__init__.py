"""Rampart - a security-hardened web API scaffold.

Architecture Overview:
- **API Layer**: FastAPI application, the ordered middleware pipeline,
  validation dependencies, routes and the uvicorn bootstrap
- **Core Layer**: Configuration, the failure taxonomy, logging, redaction,
  resource tracking and the graceful shutdown state machine

Every response, successful or not, passes the same pipeline: rate
limiting, security headers, shutdown guard, CORS, body parsing and the
parameter-pollution guard, with failures rendered by one error formatter.
"""
