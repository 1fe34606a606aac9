"""Utility functions for the Google Photos uploader."""

import logging
import os
from fnmatch import fnmatch
from pathlib import Path

from gphotos_uploader.config import ALBUM_FROM_FOLDER_PATH, SyncTarget
from gphotos_uploader.models import UploadItem

logger = logging.getLogger(__name__)

# Supported image extensions
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".heic", ".tif", ".tiff"}

# Supported video extensions
VIDEO_EXTENSIONS = {".mp4", ".mov", ".m4v", ".avi", ".mkv", ".3gp", ".mpg", ".wmv"}


def is_image_file(path: Path) -> bool:
    """Check if a file is a supported image format.

    Args:
        path: Path to the file to check

    Returns:
        True if the file is a supported image format, False otherwise
    """
    return path.is_file() and path.suffix.lower() in IMAGE_EXTENSIONS


def is_media_file(path: Path, include_videos: bool = True) -> bool:
    """Check if a file is a supported image, or video when allowed."""
    if is_image_file(path):
        return True
    return include_videos and path.is_file() and path.suffix.lower() in VIDEO_EXTENSIONS


def matches_any(relative_path: str, patterns: tuple[str, ...]) -> bool:
    """Check a slash-separated relative path against glob patterns.

    A pattern matches either the whole relative path or the file name.
    """
    name = relative_path.rsplit("/", 1)[-1]
    return any(fnmatch(relative_path, p) or fnmatch(name, p) for p in patterns)


def album_name_for(path: Path, source_folder: Path, use: str) -> str | None:
    """Album name of a file under the given naming policy.

    Files directly inside the source folder have no album.
    """
    relative_dir = path.parent.relative_to(source_folder)
    if relative_dir == Path("."):
        return None
    if use == ALBUM_FROM_FOLDER_PATH:
        return "_".join(relative_dir.parts)
    return path.parent.name


def scan_folder(target: SyncTarget) -> list[UploadItem]:
    """Collect the files of a sync target that should be uploaded.

    The source folder is walked recursively in sorted order. Only media
    files are kept; include patterns (all media when empty) and exclude
    patterns are matched against the path relative to the source folder.

    Args:
        target: Sync target to scan

    Returns:
        List of upload candidates

    Raises:
        FileNotFoundError: If the source folder doesn't exist
        NotADirectoryError: If the source folder is not a directory
    """
    root = target.source_folder
    if not root.exists():
        raise FileNotFoundError(f"Source folder does not exist: {root}")

    if not root.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {root}")

    items: list[UploadItem] = []

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            relative = path.relative_to(root).as_posix()

            if not is_media_file(path, target.upload_videos):
                logger.debug(f"Skipping non-media file: {relative}")
                continue
            if target.include_patterns and not matches_any(relative, target.include_patterns):
                continue
            if matches_any(relative, target.exclude_patterns):
                logger.debug(f"Excluded by pattern: {relative}")
                continue

            album_name = None
            if target.make_albums.enabled:
                album_name = album_name_for(path, root, target.make_albums.use)
            items.append(UploadItem(path=path, album_name=album_name))

    logger.info(f"Found {len(items)} file(s) to consider in '{root}'")
    return items
