"""HTTP API layer built on FastAPI.

Key components:
- **main**: Application factory, pipeline order and lifespan
- **middleware**: One module per pipeline stage plus the error formatter
- **validation**: Schema validation dependencies and field types
- **schemas**: Error envelope and request models
- **routes**: Health, demonstration and utility endpoints
- **server**: Uvicorn bootstrap with TLS, signals and connection tracking
- **utils**: Response class and request helpers
"""
