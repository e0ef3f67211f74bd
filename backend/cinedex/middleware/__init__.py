"""
Cinedex Backend: Middleware Package
=====================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [Recovery] → [Request ID] → [Logging] → [Metrics] → [Rate Limit]
            → [CORS] → [Authenticate] → route gates → handler

    1. Recovery: contains anything the inner layers let escape
    2. Request ID: correlation ID for every log line below it
    3. Logging: access log with status and duration
    4. Metrics: counts every request, including rate-limited ones
    5. Rate Limit: rejects abusive clients before any real work
    6. CORS: Starlette's CORSMiddleware, answers matching preflights
    7. Authenticate: attaches the caller's identity to request.state.user

    Starlette wraps middleware in reverse order of registration, so
    `create_app()` adds them innermost first.
"""
