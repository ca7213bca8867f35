"""
WSGI config for the chat backend.

Serves the REST API only. WebSocket sessions, presence and event fan-out
need the ASGI application in config.asgi (run under Uvicorn).
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
