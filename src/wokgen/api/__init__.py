"""WokGen FastAPI REST API layer.

Modules
-------
main
    FastAPI application with the route handlers, exception handlers and the
    ``main()`` CLI entry point.
models
    Pydantic models for API request and response validation.
dependencies
    Request-scoped accessors for configuration, HTTP client and limiter.
access
    Session lookup and rate limiting for multi-tenant deployments.
"""
