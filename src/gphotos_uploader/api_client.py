"""Google Photos Library API client with retry logic using httpx for async HTTP calls."""

import logging
import mimetypes
from pathlib import Path
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from gphotos_uploader.models import Album, AlbumPage, MediaItem, MediaItemPage

logger = logging.getLogger(__name__)

# Photos Library API base URL
PHOTOS_API_BASE_URL = "https://photoslibrary.googleapis.com"

SCOPES = [
    "https://www.googleapis.com/auth/photoslibrary",
    "https://www.googleapis.com/auth/photoslibrary.sharing",
]

# Largest page the service accepts when searching media items
SEARCH_PAGE_SIZE = 100


class PhotosAPIError(Exception):
    """Base exception for Google Photos API errors."""

    pass


class RateLimitError(PhotosAPIError):
    """Exception raised when hitting rate limits."""

    pass


class ServerError(PhotosAPIError):
    """Exception raised for 5xx server errors."""

    pass


def _album_from_json(data: dict[str, Any]) -> Album:
    count = data.get("mediaItemsCount")
    return Album(
        id=data["id"],
        title=data.get("title", ""),
        product_url=data.get("productUrl", ""),
        media_items_count=int(count) if count is not None else None,
    )


def _media_item_from_json(data: dict[str, Any]) -> MediaItem:
    return MediaItem(
        id=data["id"],
        filename=data.get("filename"),
        product_url=data.get("productUrl"),
    )


class GooglePhotosClient:
    """Client for interacting with the Google Photos Library API using httpx."""

    def __init__(self, access_token: str, base_url: str = PHOTOS_API_BASE_URL) -> None:
        """Initialize Google Photos API client.

        Args:
            access_token: OAuth2 bearer token for the account
            base_url: API root, overridable for tests
        """
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "GooglePhotosClient":
        """Async context manager entry."""
        self._client = httpx.AsyncClient(
            timeout=60.0,
            headers={"Authorization": f"Bearer {self.access_token}"},
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
        self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the httpx AsyncClient instance.

        Raises:
            RuntimeError: If client is used outside of async context manager
        """
        if self._client is None:
            raise RuntimeError("Client must be used within async context manager")
        return self._client

    async def upload_file(self, path: Path) -> MediaItem:
        """Upload a local file and create a media item from it.

        Args:
            path: Path to the photo or video

        Returns:
            The created media item

        Raises:
            FileNotFoundError: If the file doesn't exist
            PhotosAPIError: If the upload or the media item creation fails
        """
        if not path.exists():
            raise FileNotFoundError(f"Media file not found: {path}")

        mime_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        content = path.read_bytes()
        response = await self._request(
            "POST",
            "/v1/uploads",
            f"uploading {path.name}",
            content=content,
            headers={
                "Content-Type": "application/octet-stream",
                "X-Goog-Upload-Content-Type": mime_type,
                "X-Goog-Upload-File-Name": path.name,
                "X-Goog-Upload-Protocol": "raw",
            },
        )
        upload_token = response.text.strip()
        if not upload_token:
            raise PhotosAPIError(f"Empty upload token while uploading {path.name}")

        result = self._parse_json_response(
            await self._request(
                "POST",
                "/v1/mediaItems:batchCreate",
                f"creating media item for {path.name}",
                json={
                    "newMediaItems": [
                        {
                            "simpleMediaItem": {
                                "uploadToken": upload_token,
                                "fileName": path.name,
                            }
                        }
                    ]
                },
            ),
            f"creating media item for {path.name}",
        )
        created = (result.get("newMediaItemResults") or [{}])[0]
        status = created.get("status", {})
        if status.get("code") or "mediaItem" not in created:
            raise PhotosAPIError(
                f"Media item creation failed for {path.name}: "
                f"{status.get('message', 'no media item returned')}"
            )

        item = _media_item_from_json(created["mediaItem"])
        logger.debug(f"Uploaded {path.name}, media item ID: {item.id}")
        return item

    async def create_album(self, title: str) -> Album:
        """Create a new album.

        Args:
            title: Album title

        Returns:
            The created album
        """
        context = f"creating album '{title}'"
        response = await self._request(
            "POST", "/v1/albums", context, json={"album": {"title": title}}
        )
        album = _album_from_json(self._parse_json_response(response, context))
        logger.info(f"Created album '{title}' with ID: {album.id}")
        return album

    async def get_album(self, album_id: str) -> Album:
        """Fetch album metadata."""
        context = f"getting album {album_id}"
        response = await self._request("GET", f"/v1/albums/{album_id}", context)
        return _album_from_json(self._parse_json_response(response, context))

    async def list_albums(self, page_size: int = 50, page_token: str = "") -> AlbumPage:
        """Fetch one page of the account's albums.

        Args:
            page_size: Number of albums per page (the service caps it at 50)
            page_token: Cursor returned by the previous page, empty for the first

        Returns:
            The page, whose ``next_page_token`` is empty on the last page
        """
        params: dict[str, Any] = {"pageSize": page_size}
        if page_token:
            params["pageToken"] = page_token
        context = "listing albums"
        response = await self._request("GET", "/v1/albums", context, params=params)
        result = self._parse_json_response(response, context)
        return AlbumPage(
            albums=[_album_from_json(a) for a in result.get("albums", [])],
            next_page_token=result.get("nextPageToken", ""),
        )

    async def search_media_items(self, album_id: str, page_token: str = "") -> MediaItemPage:
        """Fetch one page of the media items contained in an album."""
        body: dict[str, Any] = {"albumId": album_id, "pageSize": SEARCH_PAGE_SIZE}
        if page_token:
            body["pageToken"] = page_token
        context = f"searching media items of album {album_id}"
        response = await self._request("POST", "/v1/mediaItems:search", context, json=body)
        result = self._parse_json_response(response, context)
        return MediaItemPage(
            media_items=[_media_item_from_json(m) for m in result.get("mediaItems", [])],
            next_page_token=result.get("nextPageToken", ""),
        )

    async def add_to_album(self, album_id: str, media_item_ids: list[str]) -> None:
        """Add existing media items to an album in a single call.

        The service accepts at most 50 ids per call; callers chunk larger sets.
        """
        await self._request(
            "POST",
            f"/v1/albums/{album_id}:batchAddMediaItems",
            f"adding {len(media_item_ids)} item(s) to album {album_id}",
            json={"mediaItemIds": media_item_ids},
        )

    @retry(
        retry=retry_if_exception_type((RateLimitError, ServerError)),
        wait=wait_exponential(multiplier=1, min=1, max=60),
        stop=stop_after_attempt(5),
        reraise=True,
    )
    async def _request(
        self, method: str, path: str, context: str, **kwargs: Any
    ) -> httpx.Response:
        """Send a request, raising typed errors for failed responses.

        Raises:
            PhotosAPIError: If the request fails permanently
            RateLimitError: If rate limit is exceeded
            ServerError: If a server or network error occurs
        """
        try:
            response = await self.client.request(method, f"{self.base_url}{path}", **kwargs)
        except httpx.RequestError as e:
            logger.warning(f"Network error while {context}, will retry: {e}")
            raise ServerError(f"Network error: {e}") from e

        if response.status_code >= 400:
            result = self._parse_json_response(response, context)
            self._handle_error_response(response.status_code, result, context)
        return response

    def _parse_json_response(
        self, response: httpx.Response, context: str
    ) -> dict[str, Any]:
        """Parse JSON response, handling non-JSON responses gracefully.

        Args:
            response: The httpx Response object
            context: Description of what operation was attempted

        Returns:
            Parsed JSON as a dictionary

        Raises:
            ServerError: If response is 5xx with non-JSON body
            PhotosAPIError: If response has invalid JSON for non-5xx status
        """
        try:
            return response.json()
        except ValueError:
            # Non-JSON response (e.g., HTML error page during outages)
            if response.status_code >= 500:
                logger.warning(f"Server returned non-JSON response while {context}, will retry")
                raise ServerError(
                    f"Server error {response.status_code}: {response.text[:200]}"
                )
            raise PhotosAPIError(
                f"Invalid API response while {context}: {response.text[:200]}"
            )

    def _handle_error_response(
        self, status_code: int, result: dict[str, Any], context: str
    ) -> None:
        """Handle error responses from the Photos Library API.

        Raises:
            RateLimitError: If rate limit is exceeded
            ServerError: If server error occurs
            PhotosAPIError: For other API errors
        """
        error = result.get("error", {})
        error_status = error.get("status", "")
        error_message = error.get("message", str(result))

        if status_code == 429 or error_status == "RESOURCE_EXHAUSTED":
            logger.warning(f"Rate limit exceeded while {context}, will retry")
            raise RateLimitError(f"Google Photos API rate limit exceeded: {error_message}")

        if status_code >= 500:
            logger.warning(f"Server error while {context}, will retry")
            raise ServerError(f"Google Photos API server error: {error_message}")

        # Other errors - don't retry
        error_msg = f"Google Photos API error while {context}: {error_message}"
        logger.error(error_msg)
        raise PhotosAPIError(error_msg)
