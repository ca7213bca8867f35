# =============================================================================
# Django Project Configuration Package
# =============================================================================
# Settings, URLs and the ASGI/WSGI applications. WebSocket traffic is only
# served by the ASGI application (config.asgi).
# =============================================================================
