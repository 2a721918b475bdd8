"""Chrome bookmarks reader, used to import bookmarks into the record store."""
import json
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.models import BookmarkRecord


ROOT_NAMES = ["bookmark_bar", "other", "synced"]

# Chrome timestamps are microseconds since 1601-01-01 UTC
CHROME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)


def get_chrome_bookmarks_path(profile: str = "Default") -> Path:
    """Get the path to Chrome bookmarks file.

    Args:
        profile: Chrome profile name (default: "Default")

    Returns:
        Path to the Bookmarks file
    """
    home = Path.home()
    if os.name == "nt":  # Windows
        chrome_path = home / "AppData" / "Local" / "Google" / "Chrome" / "User Data" / profile / "Bookmarks"
    elif sys.platform == "darwin":  # macOS
        chrome_path = home / "Library" / "Application Support" / "Google" / "Chrome" / profile / "Bookmarks"
    elif os.name == "posix":  # Linux
        chrome_path = home / ".config" / "google-chrome" / profile / "Bookmarks"
        # Also check for chromium
        if not chrome_path.exists():
            chrome_path = home / ".config" / "chromium" / profile / "Bookmarks"
    else:
        raise OSError(f"Unsupported operating system: {os.name}")

    return chrome_path


def chrome_time_to_datetime(value: Any, fallback: datetime) -> datetime:
    """Convert a Chrome ``date_added`` value to an aware datetime.

    Missing, zero or unparsable values yield ``fallback``.
    """
    try:
        micros = int(value)
    except (TypeError, ValueError):
        return fallback

    if micros <= 0:
        return fallback

    try:
        return CHROME_EPOCH + timedelta(microseconds=micros)
    except OverflowError:
        return fallback


def load_bookmarks_file(bookmarks_path: Path) -> Dict[str, Any]:
    """Load Chrome bookmarks JSON file.

    Raises:
        FileNotFoundError: If bookmarks file doesn't exist
        json.JSONDecodeError: If bookmarks file is malformed
    """
    if not bookmarks_path.exists():
        raise FileNotFoundError(f"Bookmarks file not found at {bookmarks_path}")

    with open(bookmarks_path, "r", encoding="utf-8") as f:
        return json.load(f)


def extract_bookmarks(
    node: Dict[str, Any],
    bookmarks: List[BookmarkRecord],
    path: str,
    imported_at: datetime,
) -> None:
    """Recursively extract bookmarks from Chrome bookmarks structure.

    Args:
        node: Current node in the bookmarks tree
        bookmarks: List to accumulate bookmarks
        path: Current folder path
        imported_at: Used as ``added_at`` when the node has no usable date
    """
    if node.get("type") == "url":
        bookmarks.append(BookmarkRecord(
            id=f"chrome_{node.get('id', '')}",
            title=node.get("name", ""),
            url=node.get("url", ""),
            folder=path,
            added_at=chrome_time_to_datetime(node.get("date_added"), imported_at),
        ))
    elif node.get("type") == "folder":
        folder_name = node.get("name", "")
        new_path = f"{path}/{folder_name}" if path else folder_name
        for child in node.get("children", []):
            extract_bookmarks(child, bookmarks, new_path, imported_at)


def read_chrome_bookmarks(
    bookmarks_path: Optional[Path] = None,
    profile: str = "Default",
) -> List[BookmarkRecord]:
    """Read all bookmarks from a Chrome bookmarks file.

    Args:
        bookmarks_path: Path to bookmarks file. If None, uses the profile's default location.
        profile: Chrome profile used to locate the default file

    Returns:
        Bookmark records with ids prefixed ``chrome_`` and folder paths using
        the root key as prefix (e.g., 'bookmark_bar/Work').

    Raises:
        FileNotFoundError: If bookmarks file doesn't exist
        json.JSONDecodeError: If bookmarks file is malformed
    """
    if bookmarks_path is None:
        bookmarks_path = get_chrome_bookmarks_path(profile)

    bookmarks_data = load_bookmarks_file(bookmarks_path)
    imported_at = datetime.now(timezone.utc)

    all_bookmarks: List[BookmarkRecord] = []
    roots = bookmarks_data.get("roots", {})

    for root_name in ROOT_NAMES:
        if root_name in roots:
            # Use the root key as path prefix instead of the localized root folder name
            for child in roots[root_name].get("children", []):
                extract_bookmarks(child, all_bookmarks, root_name, imported_at)

    return all_bookmarks
