"""HTTP client used to call the external APIs behind OpenAPI tools."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from toolrelay.infra.config import config
from toolrelay.infra.error_handler import ExternalCallError

logger = logging.getLogger(__name__)


@dataclass
class HttpToolResponse:
    """Transport-neutral view of an external API response."""
    status: int
    status_text: str
    content: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON. Raises ValueError on invalid JSON."""
        return json.loads(self.content)


class HttpToolClient:
    """
    Issues exactly one HTTP request per call, without retries.

    A shared httpx.AsyncClient can be injected (tests, connection reuse);
    otherwise a short-lived client is opened per request.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: Optional[float] = None):
        self._client = client
        self._timeout = timeout or config.TOOL_EXECUTION_TIMEOUT

    async def request(
        self,
        url: str,
        method: str,
        headers: Dict[str, str],
        body: Any = None,
    ) -> HttpToolResponse:
        """
        Send one request and return its status and raw body.

        Args:
            url: Fully resolved URL including any query string
            method: HTTP method
            headers: Request headers
            body: JSON-serializable request body, sent only when not None

        Raises:
            ExternalCallError: If the request could not be completed
                (connection error, timeout, invalid URL, unencodable header)
        """
        content = json.dumps(body).encode("utf-8") if body is not None else None
        try:
            if self._client is not None:
                response = await self._client.request(method, url, headers=headers, content=content)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.request(method, url, headers=headers, content=content)
        except httpx.TimeoutException as e:
            raise ExternalCallError(f"Request to {url} timed out") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ExternalCallError(f"Request to {url} failed: {e}") from e
        except UnicodeEncodeError as e:
            # httpx encodes header values as ASCII when building the request
            raise ExternalCallError(f"Request to {url} has a header value that cannot be encoded: {e}") from e

        status_text = response.reason_phrase or httpx.codes.get_reason_phrase(response.status_code)
        return HttpToolResponse(
            status=response.status_code,
            status_text=status_text,
            content=response.content,
        )
