"""Request pipeline stages, one middleware per concern.

Stages in request order (outermost first):

1. **RequestLoggingMiddleware**: start/finish records with timing
2. **SecurityHeadersMiddleware**: hardening headers on every response
3. **RateLimitMiddleware**: per-client fixed-window budget (429)
4. **ShutdownGuardMiddleware**: 503 once the process is draining
5. **CORSMiddleware**: origin whitelist, preflight answers (403)
6. **BodyParserMiddleware**: size-limited JSON/form parsing (413, 400)
7. **ParameterPollutionMiddleware**: repeated fields collapse to the last value
8. **ErrorBoundaryMiddleware**: unhandled route errors become formatted 500s

Schema validation runs per route as FastAPI dependencies, and every
failure is rendered by ``error_handler.render_failure``.
"""
