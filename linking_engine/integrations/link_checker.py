"""HTTP liveness checker for outbound links.

Implements the VerificationProvider interface of the external linking
service with httpx:
- HEAD first, GET when the server answers 405 Method Not Allowed
- Redirects are followed; the final status decides
- Timeouts, connection errors and invalid URLs count as dead links
"""

import time

import httpx

from linking_engine.core.config import get_settings
from linking_engine.core.logging import get_logger

logger = get_logger(__name__)

USER_AGENT = "ContentLinkingEngine/2.0 (+link verification)"


class HttpLinkChecker:
    """Checks URLs with a shared httpx.AsyncClient."""

    def __init__(
        self,
        timeout: float | None = None,
        valid_status_codes: list[int] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        self._timeout = timeout or settings.verification_timeout
        self._valid_status_codes = frozenset(
            valid_status_codes or settings.verification_valid_status_codes
        )
        # HTTP client (created lazily unless injected)
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this checker created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "HttpLinkChecker":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def check_url(self, url: str) -> bool:
        """Return True when url answers with a valid status code."""
        client = await self._get_client()
        start_time = time.monotonic()
        try:
            response = await client.head(url, follow_redirects=True)
            if response.status_code == 405:
                response = await client.get(url, follow_redirects=True)
        except httpx.TimeoutException:
            logger.warning(
                "Link check timed out",
                extra={"url": url[:200], "timeout": self._timeout},
            )
            return False
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(
                "Link check failed",
                extra={
                    "url": url[:200],
                    "error_type": type(e).__name__,
                    "error_message": str(e)[:500],
                },
            )
            return False

        duration_ms = (time.monotonic() - start_time) * 1000
        alive = response.status_code in self._valid_status_codes
        logger.debug(
            "Link checked",
            extra={
                "url": url[:200],
                "status_code": response.status_code,
                "alive": alive,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return alive
