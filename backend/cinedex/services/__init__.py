"""
Cinedex Backend: Services Layer
=================================

What:  Domain rules and runtime collaborators that know nothing about HTTP.

Service Inventory:
    - passwords.py:     Password credential (bcrypt) and user validation
    - tokens.py:        Opaque token generation, hashing and validation
    - filters.py:       Pagination/sort parsing rules and list metadata
    - movies.py:        Movie validation rules and listing defaults
    - mailer.py:        Mailer interface, Jinja2 rendering, SMTP delivery
    - background.py:    Tracked fire-and-forget tasks (emails)
    - rate_limiter.py:  Per-IP token buckets with idle eviction
    - metrics.py:       Request/response counters for /debug/vars
"""
