# Middleware package init
"""
Travel Log API — Middleware Package
=====================================

Cross-cutting concerns applied to every request, plus the per-route
dependencies that guard request bodies and protected routes.

Middleware Chain:
    Request → [Request ID] → [CORS] → [Logging] → [GZip] → Route Handler

    - request_id.py: correlation ID on responses and log records
    - logging.py:    access log line per request

Route dependencies:
    - auth.py:       bearer token authentication and ownership checks
    - json_body.py:  application/json bodies that decode to an object
"""
