"""
Optional API key middleware for the run endpoint.
LAN IPs bypass auth. External requests need a Bearer token listed in API_KEYS.
"""

import logging
import os
from ipaddress import ip_address, ip_network
from typing import Iterable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

PRIVATE_NETWORKS = [
    ip_network("127.0.0.0/8"),
    ip_network("10.0.0.0/8"),
    ip_network("172.16.0.0/12"),
    ip_network("192.168.0.0/16"),
    ip_network("::1/128"),
]

# Only requests that start work need a key.
AUTH_PREFIXES = ("/v1/runs",)


def _is_private_ip(addr: str) -> bool:
    try:
        ip = ip_address(addr)
        return any(ip.version == net.version and ip in net for net in PRIVATE_NETWORKS)
    except ValueError:
        return False


def load_api_keys(raw: Optional[str] = None) -> set:
    raw = os.environ.get("API_KEYS", "") if raw is None else raw
    return {k.strip() for k in raw.split(",") if k.strip()}


class ApiKeyMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, keys: Iterable[str]):
        super().__init__(app)
        self._keys = set(keys)

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not self._keys or not any(path.startswith(p) for p in AUTH_PREFIXES):
            return await call_next(request)

        client_ip = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if not client_ip:
            client_ip = request.client.host if request.client else ""
        if _is_private_ip(client_ip):
            return await call_next(request)

        auth = request.headers.get("authorization", "")
        if not auth.startswith("Bearer "):
            return JSONResponse(status_code=401, content={"detail": "Missing API key"})
        if auth[7:].strip() not in self._keys:
            logger.warning(f"Rejected API key from {client_ip}")
            return JSONResponse(status_code=403, content={"detail": "Invalid API key"})
        return await call_next(request)
