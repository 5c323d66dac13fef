"""
storygraph.discovery - Breadth-first asset discovery.

Walks a folder hierarchy through a paginated lister and turns every
audio/video entry into a fresh MediaAsset. The lister abstracts the
discovery source; LocalFolderLister serves a local directory tree.
"""

from __future__ import annotations

import mimetypes
from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from storygraph.models import ClipType, JobState, MediaAsset, MediaCategory
from storygraph.project import compute_file_md5

FOLDER_MIME_TYPE = "application/vnd.folder"


@dataclass
class DiscoveredEntry:
    """One entry of a folder listing page."""

    id: str
    name: str
    mime_type: str
    checksum: str = ""
    size: int = 0
    duration_ms: int = 0

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE


@dataclass
class ListingPage:
    entries: list[DiscoveredEntry] = field(default_factory=list)
    next_page_token: str | None = None


class FolderLister(Protocol):
    def list_page(self, folder_id: str, page_token: str | None = None) -> ListingPage: ...


def is_media_entry(entry: DiscoveredEntry) -> bool:
    return entry.mime_type.startswith(("video/", "audio/"))


def is_audio_entry(entry: DiscoveredEntry) -> bool:
    return "audio" in entry.mime_type or entry.name.lower().endswith(".wav")


def entry_to_asset(entry: DiscoveredEntry, relative_path: str) -> MediaAsset:
    """Build the initial registry record for a discovered media entry."""
    return MediaAsset(
        id=entry.id,
        filename=entry.name,
        checksum=entry.checksum,
        size_bytes=entry.size,
        mime_type=entry.mime_type,
        relative_path=relative_path,
        duration_ms=entry.duration_ms,
        media_category=MediaCategory.AUDIO if is_audio_entry(entry) else MediaCategory.VIDEO,
        clip_type=ClipType.UNKNOWN,
        job_state=JobState.NONE,
        sync_offset_frames=0,
    )


def crawl(lister: FolderLister, root_id: str) -> Iterator[MediaAsset]:
    """Traverse folders breadth-first, yielding a MediaAsset per media file.

    Args:
        lister: Paginated folder listing source
        root_id: Folder to start from

    Yields:
        New MediaAsset records, relative_path set to the folder path from root
    """
    queue: deque[tuple[str, str]] = deque([(root_id, "")])
    while queue:
        folder_id, relative_path = queue.popleft()
        page_token = None
        while True:
            page = lister.list_page(folder_id, page_token)
            for entry in page.entries:
                if entry.is_folder:
                    child_path = f"{relative_path}/{entry.name}" if relative_path else entry.name
                    queue.append((entry.id, child_path))
                elif is_media_entry(entry):
                    yield entry_to_asset(entry, relative_path)
            page_token = page.next_page_token
            if not page_token:
                break


class LocalFolderLister:
    """Lists a local directory tree; folder and asset ids are root-relative paths."""

    def __init__(
        self,
        root: Path,
        page_size: int = 100,
        checksum: Callable[[Path], str] | None = compute_file_md5,
    ) -> None:
        self.root = root.resolve()
        self.page_size = page_size
        self.checksum = checksum

    def _resolve(self, folder_id: str) -> Path:
        return self.root / folder_id if folder_id else self.root

    def list_page(self, folder_id: str, page_token: str | None = None) -> ListingPage:
        folder = self._resolve(folder_id)
        children = sorted(p for p in folder.iterdir() if not p.name.startswith("."))
        start = int(page_token) if page_token else 0
        chunk = children[start : start + self.page_size]

        entries = []
        for path in chunk:
            entry_id = str(path.relative_to(self.root).as_posix())
            if path.is_dir():
                entries.append(DiscoveredEntry(id=entry_id, name=path.name, mime_type=FOLDER_MIME_TYPE))
                continue
            mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
            if path.suffix.lower() == ".wav":
                mime_type = "audio/wav"
            entry = DiscoveredEntry(
                id=entry_id,
                name=path.name,
                mime_type=mime_type,
                size=path.stat().st_size,
            )
            if self.checksum and is_media_entry(entry):
                entry.checksum = self.checksum(path)
            entries.append(entry)

        end = start + self.page_size
        next_token = str(end) if end < len(children) else None
        return ListingPage(entries=entries, next_page_token=next_token)
