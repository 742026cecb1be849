# Middleware package init
"""
AllerScan Backend — Middleware Package
========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Rate Limit first: abusive clients are rejected before any work
    2. Request ID: correlation ID for logs and error bodies
    3. Logging: method, path, status and duration with the request ID

    The order is reversed for responses, so the request ID header and the
    logged status/duration are both available on the way out.
"""
