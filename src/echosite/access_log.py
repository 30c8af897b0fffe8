"""
=============================================================================
ACCESS LOG
=============================================================================

One INFO record per answered request on the ``echosite.access`` logger,
separate from the operational ``echosite.*`` loggers so it can be routed or
silenced on its own.

    text   ::1 - - [18/Oct/2026:10:15:32 +0000] "POST /" 201 52 0.84ms
    json   {"request_id": "1f0c9a2e", "method": "POST", "path": "/", ...}

Requests rejected before parsing (400 on a malformed request line, 408, 503)
have no method or path; they are logged with "-" in those places.

=============================================================================
"""

import json
import time
import uuid
import logging
from dataclasses import dataclass, field
from typing import Optional

from .http.request import HTTPRequest
from .http.response import HTTPResponse


logger = logging.getLogger("echosite.access")


@dataclass
class RequestLog:
    """
    Structured log entry for one request/response exchange.

    Attributes:
        method:         Request method, "-" if the request never parsed
        path:           Request path without query string
        client_ip:      Peer address
        user_agent:     User-Agent header, "-" if absent
        status_code:    Status sent back
        content_length: Response body size in bytes
        duration_ms:    Time from request read to response built
        request_id:     Short random id for correlating log lines
        timestamp:      Apache-style local time
    """

    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    request_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    timestamp: str = field(default_factory=lambda: time.strftime("%d/%b/%Y:%H:%M:%S %z"))

    @classmethod
    def from_exchange(
        cls,
        request: Optional[HTTPRequest],
        response: HTTPResponse,
        client_address: tuple,
        duration_ms: float,
    ) -> "RequestLog":
        return cls(
            method=request.method if request else "-",
            path=request.path if request else "-",
            client_ip=client_address[0] if client_address else "-",
            user_agent=(request.user_agent if request else "") or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
        )

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Apache common-log style line, plus the duration."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class AccessLogger:
    """
    Emits RequestLog entries in the configured format.

        access = AccessLogger(log_format="json")
        access.log(request, response, conn.address, duration_ms)
    """

    def __init__(self, log_format: str = "text", log_level: int = logging.INFO):
        self.log_format = log_format
        self.log_level = log_level

    def log(
        self,
        request: Optional[HTTPRequest],
        response: HTTPResponse,
        client_address: tuple,
        duration_ms: float,
    ) -> RequestLog:
        entry = RequestLog.from_exchange(request, response, client_address, duration_ms)

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict(), ensure_ascii=False))
        else:
            logger.log(self.log_level, entry.to_text())

        return entry
