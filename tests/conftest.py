"""Pytest configuration and shared fixtures."""

import asyncio
import json
from pathlib import Path

import pytest

from gphotos_uploader.models import Album, AlbumPage, MediaItem, MediaItemPage


class FakePhotosService:
    """In-memory stand-in for the Google Photos API client.

    Albums are listed ``album_page_size`` at a time unless explicit ``pages``
    of album ids are given; album contents are searched two items per page
    so that every listing goes through several pages.
    """

    def __init__(
        self,
        albums: list[tuple[str, str, int]] | None = None,
        pages: list[list[str]] | None = None,
        album_page_size: int = 50,
        search_page_size: int = 2,
    ) -> None:
        self.albums: dict[str, Album] = {}
        self.contents: dict[str, list[str]] = {}
        for album_id, title, count in albums or []:
            self.add_album(album_id, title, [f"{album_id}-item{i}" for i in range(count)])
        self.pages = pages
        self.album_page_size = album_page_size
        self.search_page_size = search_page_size

        self.list_calls: list[str] = []
        self.add_calls: list[tuple[str, list[str]]] = []
        self.created_albums: list[str] = []
        self.uploaded: list[Path] = []
        self.fail_uploads: set[str] = set()
        self.fail_add_call: int | None = None
        self.fail_list_call: int | None = None
        self.create_delay = 0.0

    def add_album(self, album_id: str, title: str, item_ids: list[str]) -> None:
        self.albums[album_id] = Album(
            id=album_id, title=title, product_url=f"https://photos.example/{album_id}"
        )
        self.contents[album_id] = list(item_ids)

    async def __aenter__(self) -> "FakePhotosService":
        return self

    async def __aexit__(self, *args) -> None:
        pass

    async def upload_file(self, path: Path) -> MediaItem:
        await asyncio.sleep(0)
        if path.name in self.fail_uploads:
            raise RuntimeError(f"upload of {path.name} failed")
        self.uploaded.append(path)
        return MediaItem(id=f"media-{path.name}", filename=path.name)

    async def create_album(self, title: str) -> Album:
        await asyncio.sleep(self.create_delay)
        album_id = f"created-{len(self.created_albums)}"
        self.created_albums.append(title)
        self.add_album(album_id, title, [])
        return self.albums[album_id]

    async def get_album(self, album_id: str) -> Album:
        return self.albums[album_id]

    async def list_albums(self, page_size: int = 50, page_token: str = "") -> AlbumPage:
        self.list_calls.append(page_token)
        if self.fail_list_call is not None and len(self.list_calls) > self.fail_list_call:
            raise RuntimeError("listing failed")

        if self.pages is not None:
            layout = self.pages
        else:
            ids = list(self.albums)
            size = min(page_size, self.album_page_size)
            layout = [ids[i:i + size] for i in range(0, len(ids), size)] or [[]]

        index = int(page_token or 0)
        next_token = str(index + 1) if index + 1 < len(layout) else ""
        return AlbumPage(
            albums=[self.albums[album_id] for album_id in layout[index]],
            next_page_token=next_token,
        )

    async def search_media_items(self, album_id: str, page_token: str = "") -> MediaItemPage:
        items = self.contents[album_id]
        start = int(page_token or 0)
        end = start + self.search_page_size
        return MediaItemPage(
            media_items=[MediaItem(id=i) for i in items[start:end]],
            next_page_token=str(end) if end < len(items) else "",
        )

    async def add_to_album(self, album_id: str, media_item_ids: list[str]) -> None:
        if self.fail_add_call is not None and len(self.add_calls) == self.fail_add_call:
            raise RuntimeError("batch add failed")
        self.add_calls.append((album_id, list(media_item_ids)))
        present = self.contents[album_id]
        present.extend(i for i in media_item_ids if i not in present)


@pytest.fixture
def photos_service() -> FakePhotosService:
    """Return an empty in-memory photo service."""
    return FakePhotosService()


@pytest.fixture
def temp_photos_dir(tmp_path: Path) -> Path:
    """Create a temporary directory structure with test photos.

    Structure:
        temp_dir/
            photos/
                root.jpg
                album1/
                    photo1.jpg
                    photo2.png
                    notes.txt
                album2/
                    photo3.jpg
                    clip.mp4
                    nested/
                        photo4.jpg
                empty_album/
    """
    root = tmp_path / "photos"
    root.mkdir()
    (root / "root.jpg").write_text("fake jpg content")

    album1 = root / "album1"
    album1.mkdir()
    (album1 / "photo1.jpg").write_text("fake jpg content")
    (album1 / "photo2.png").write_text("fake png content")
    (album1 / "notes.txt").write_text("not a photo")

    album2 = root / "album2"
    album2.mkdir()
    (album2 / "photo3.jpg").write_text("fake jpg content")
    (album2 / "clip.mp4").write_text("fake mp4 content")
    nested = album2 / "nested"
    nested.mkdir()
    (nested / "photo4.jpg").write_text("fake jpg content")

    (root / "empty_album").mkdir()

    return root


@pytest.fixture
def access_token() -> str:
    """Return a fake access token for testing."""
    return "test_access_token_123"


@pytest.fixture
def config_dir(tmp_path: Path, temp_photos_dir: Path) -> Path:
    """Create a configuration directory with one job and a stored token."""
    directory = tmp_path / "config"
    directory.mkdir()
    config = {
        "api_app_credentials": {"client_id": "client-id", "client_secret": "secret"},
        "jobs": [
            {
                "account": "me@example.com",
                "source_folder": str(temp_photos_dir),
                "make_albums": {"enabled": True, "use": "folderName"},
                "upload_videos": False,
            }
        ],
    }
    (directory / "config.json").write_text(json.dumps(config))
    return directory
