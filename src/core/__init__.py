"""Core package for framework-independent application functionality.

- **config**: Centralized configuration management with environment support
- **constants**: Defaults and client-facing placeholder strings
- **context**: Per-request context record and reference ids
- **exceptions**: Failure taxonomy and the RampartError hierarchy
- **redaction**: Scrubbing of paths, stack frames and submitted values
- **logging**: Loguru setup with console and JSON formatters
- **resources**: Tracking of live connections and timers
- **shutdown**: Graceful shutdown state machine
- **types**: Type aliases for better code clarity
"""
