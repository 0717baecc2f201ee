"""Inbound rate limiting for the generate-flashcards endpoint, using slowapi.

Keyed on the peer address. X-Forwarded-For is only honoured through
ProxyHeadersMiddleware (see main.py), which rewrites the peer for
requests arriving from ``settings.forwarded_allow_ips``.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
