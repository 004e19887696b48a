# Middleware package init
"""
Widget API Backend: Middleware Package
=========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (last added runs first):
    Request → [Request ID] → [GZip] → [CORS] → Route Handler

    The request id is set before anything else runs, so every log line and
    every error body produced further down the chain can be correlated.
"""
