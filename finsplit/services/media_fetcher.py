"""Authenticated download of receipt media from the channel provider."""

import base64
import logging
from dataclasses import dataclass

import httpx

from finsplit.services.errors import MediaFetchError

logger = logging.getLogger(__name__)

ACCEPTED_MEDIA_FAMILY = "image/"


@dataclass(frozen=True)
class FetchedMedia:
    """Downloaded receipt image."""

    content: bytes
    content_type: str

    @property
    def encoded(self) -> str:
        """Base64 text handed to the extractors."""
        return base64.b64encode(self.content).decode("ascii")


class MediaFetcher:
    """Downloads media with HTTP basic auth and checks it is a real image.

    The provider answers some failures with a 200 HTML page, so both the
    content type and a minimum payload size are enforced.
    """

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        min_bytes: int = 1000,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.auth = (account_sid, auth_token)
        self.min_bytes = min_bytes
        self.timeout = timeout
        self._transport = transport

    async def fetch(self, media_url: str) -> FetchedMedia:
        """Download one media item.

        Raises:
            MediaFetchError: transport error, error status, non-image content
                type, or a payload below the minimum size
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(media_url, auth=self.auth)
        except httpx.HTTPError as e:
            logger.warning("media: request to %s failed: %s", media_url, e)
            raise MediaFetchError(f"request failed: {e.__class__.__name__}") from e

        if response.is_error:
            logger.warning("media: %s returned HTTP %s", media_url, response.status_code)
            raise MediaFetchError(f"http status {response.status_code}")

        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        if not content_type.startswith(ACCEPTED_MEDIA_FAMILY):
            logger.warning("media: unsupported content type %r from %s", content_type, media_url)
            raise MediaFetchError(f"unsupported content type {content_type or 'unknown'}")

        content = response.content
        if len(content) < self.min_bytes:
            logger.warning(
                "media: payload of %s bytes is below the %s byte minimum", len(content), self.min_bytes
            )
            raise MediaFetchError(f"payload too small ({len(content)} bytes)")

        logger.info("media: downloaded %s bytes (%s)", len(content), content_type)
        return FetchedMedia(content=content, content_type=content_type)


__all__ = ["FetchedMedia", "MediaFetcher", "ACCEPTED_MEDIA_FAMILY"]
