"""
Tianyi Router Client - HTTP Transport

This module performs the raw HTTP exchanges with the gateway. It keeps the cookie
jar for the session, enforces per-request timeouts and concurrency limits, and
logs every exchange with sensitive fields redacted.
"""

import json
import logging
import ssl
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

import certifi
import httpx

from ..shared.constants import SENSITIVE_FIELDS, USER_AGENT
from .connection import ConnectionLimiter
from .exceptions import TransportError, TransportTimeoutError, ValidationError
from .models import RouterConfig

logger = logging.getLogger("tianyi-router")


@dataclass
class RouterRequest:
    """A request to one gateway endpoint."""

    method: str
    path: str
    params: Dict[str, Any] = field(default_factory=dict)
    form: Dict[str, Any] = field(default_factory=dict)
    mutating: bool = False
    operation: str = "router_request"


def redact(values: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return a copy of ``values`` with credential and token fields masked."""
    if not values:
        return {}
    return {
        key: "[REDACTED]" if key.lower() in SENSITIVE_FIELDS else value
        for key, value in values.items()
    }


class RequestResponseLogger:
    """Logs gateway requests and responses with sensitive data protection."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def log_request(
        self,
        method: str,
        url: str,
        params: Optional[Dict] = None,
        form: Optional[Dict] = None,
        operation: str = "unknown"
    ):
        """Log request details, masking credentials and tokens."""
        log_data = {
            "operation": operation,
            "request": {
                "method": method,
                "url": url,
                "params": redact(params),
                "form": redact(form),
            }
        }

        self.logger.debug(f"API Request: {json.dumps(log_data, default=str)}")

    def log_response(
        self,
        status_code: int,
        response_size: Optional[int] = None,
        duration_ms: Optional[float] = None,
        operation: str = "unknown",
        error: Optional[Exception] = None
    ):
        """Log response details with timing."""
        log_data = {
            "operation": operation,
            "response": {
                "status_code": status_code,
                "response_size": response_size,
                "duration_ms": duration_ms,
                "success": 200 <= status_code < 400,
                "has_error": bool(error)
            }
        }

        if error:
            log_data["error"] = str(error)

        level = logging.DEBUG if log_data["response"]["success"] else logging.WARNING
        self.logger.log(level, f"API Response: {json.dumps(log_data)}")


request_logger = RequestResponseLogger(logger)


def create_ssl_context(verify_ssl: bool) -> ssl.SSLContext:
    """Create an SSL context for gateways served over HTTPS.

    Most gateways ship a self-signed certificate, so verification can be
    turned off; a warning is logged when it is.
    """
    if not verify_ssl:
        logger.warning(
            "SSL certificate verification is disabled for the gateway connection. "
            "Only do this on a trusted LAN."
        )
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    context = ssl.create_default_context(cafile=certifi.where())
    context.check_hostname = True
    context.verify_mode = ssl.CERT_REQUIRED
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    return context


class Transport:
    """Cookie-persistent HTTP exchange with one gateway."""

    def __init__(
        self,
        config: RouterConfig,
        limiter: Optional[ConnectionLimiter] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the transport.

        Args:
            config: Gateway connection configuration
            limiter: Concurrency and rate limits; built from ``config`` when omitted
            http_transport: Optional httpx transport, used to plug in a fake gateway
        """
        self.base_url = config.base_url
        self.timeout = config.timeout
        self.limiter = limiter or ConnectionLimiter(
            max_concurrency=config.max_concurrency,
            requests_per_second=config.requests_per_second,
        )

        verify: Any = False
        if config.use_https:
            verify = create_ssl_context(config.verify_ssl)

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            verify=verify,
            timeout=httpx.Timeout(config.timeout),
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=http_transport,
        )

    @property
    def cookies(self) -> httpx.Cookies:
        return self.client.cookies

    def clear_cookies(self):
        """Drop every cookie held for the gateway."""
        self.client.cookies.clear()

    def snapshot_cookies(self) -> httpx.Cookies:
        """Copy of the current cookie jar."""
        return httpx.Cookies(self.client.cookies)

    def restore_cookies(self, cookies: httpx.Cookies):
        """Replace the cookie jar with a previously taken snapshot."""
        self.client.cookies = cookies

    async def close(self):
        """Close the underlying httpx client."""
        await self.client.aclose()

    async def send(self, request: RouterRequest) -> httpx.Response:
        """Send one request and return the raw response.

        HTTP error statuses are returned, not raised; interpreting them is
        up to the caller.

        Raises:
            ValidationError: For an unsupported HTTP method
            TransportTimeoutError: If the request timed out
            TransportError: For connection and other network failures
        """
        method = request.method.upper()
        if method not in ("GET", "POST"):
            raise ValidationError(f"Unsupported HTTP method: {request.method}",
                                  context={"method": request.method})

        url = f"{self.base_url}{request.path}"
        request_logger.log_request(method, url, request.params, request.form, request.operation)

        async with self.limiter.slot():
            start_time = datetime.now()
            try:
                if method == "GET":
                    response = await self.client.get(request.path, params=request.params or None)
                else:
                    response = await self.client.post(
                        request.path,
                        params=request.params or None,
                        data=request.form or None,
                    )
            except httpx.TimeoutException as e:
                duration_ms = (datetime.now() - start_time).total_seconds() * 1000
                request_logger.log_response(0, 0, duration_ms, request.operation, e)
                raise TransportTimeoutError(
                    f"Request timed out after {self.timeout}s",
                    context={"timeout": self.timeout, "path": request.path},
                ) from e
            except httpx.ConnectError as e:
                duration_ms = (datetime.now() - start_time).total_seconds() * 1000
                request_logger.log_response(0, 0, duration_ms, request.operation, e)
                raise TransportError(
                    f"Cannot connect to gateway at {self.base_url}",
                    context={"base_url": self.base_url, "path": request.path, "error": str(e)},
                ) from e
            except httpx.RequestError as e:
                duration_ms = (datetime.now() - start_time).total_seconds() * 1000
                request_logger.log_response(0, 0, duration_ms, request.operation, e)
                raise TransportError(
                    f"Network error: {str(e)}",
                    context={"path": request.path, "error": str(e)},
                ) from e

        duration_ms = (datetime.now() - start_time).total_seconds() * 1000
        response_size = len(response.content) if response.content else 0
        request_logger.log_response(response.status_code, response_size, duration_ms, request.operation)
        return response
