"""Persisted reading list of bookmarked articles."""

import json
import logging
import re
import sqlite3
from datetime import datetime, timezone
from typing import Callable, Optional

from dateutil.parser import isoparse
from pydantic import ValidationError

from .models import Article, BookmarkRecord, BookmarkStats, ReadingListSummary, SortBy
from .storage import BookmarkStorage, MemoryStorage

logger = logging.getLogger(__name__)

RECENT_LIMIT = 5
REQUIRED_FIELDS = ("postId", "title", "path", "bookmarkedAt")
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _timestamp(record: BookmarkRecord) -> datetime:
    """Parse bookmarkedAt; unparseable values sort as oldest."""
    try:
        parsed = isoparse(record.bookmarked_at)
    except (ValueError, OverflowError):
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _read_minutes(read_time: str) -> int:
    """Leading integer of a readTime string ("5 min read" -> 5)."""
    first = read_time.strip().split(" ")[0] if read_time else ""
    match = re.match(r"\d+", first)
    return int(match.group(0)) if match else 0


def format_read_time(total_minutes: int) -> str:
    """Format minutes as "Xh Ym" or "Ym"."""
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def _parse_records(items: list) -> list[BookmarkRecord]:
    """Keep entries that carry the required fields and validate as records."""
    records = []
    for item in items:
        if not isinstance(item, dict) or not all(item.get(name) for name in REQUIRED_FIELDS):
            continue
        try:
            records.append(BookmarkRecord.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping invalid bookmark %s: %s", item.get("postId"), e.errors()[0]["msg"])
    return records


class BookmarkStore:
    """Deduplicated bookmark set keyed by postId, most recent first.

    Every mutation writes the whole set through the storage backend. A
    failed write is logged and the in-memory state is kept.
    """

    def __init__(
        self,
        storage: Optional[BookmarkStorage] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.storage = storage if storage is not None else MemoryStorage()
        self.now = now or (lambda: datetime.now(timezone.utc))
        self._bookmarks: list[BookmarkRecord] = self._load()

    def _load(self) -> list[BookmarkRecord]:
        """Read the stored set; any failure means no bookmarks."""
        try:
            stored = self.storage.read()
        except (OSError, sqlite3.Error, UnicodeDecodeError) as e:
            logger.error("Error loading bookmarks: %s", e)
            return []
        if not stored:
            return []

        try:
            data = json.loads(stored)
        except (json.JSONDecodeError, RecursionError) as e:
            logger.error("Error loading bookmarks: %s", e)
            return []
        if not isinstance(data, list):
            logger.error("Error loading bookmarks: stored value is not an array")
            return []

        records: list[BookmarkRecord] = []
        seen: set[str] = set()
        for record in _parse_records(data):
            if record.post_id not in seen:
                seen.add(record.post_id)
                records.append(record)
        logger.debug("Loaded %d bookmarks", len(records))
        return records

    def _save(self) -> None:
        try:
            self.storage.write(self.export_bookmarks())
        except (OSError, sqlite3.Error) as e:
            logger.error("Error saving bookmarks: %s", e)

    @property
    def bookmarks(self) -> list[BookmarkRecord]:
        """Copy of the current bookmark list."""
        return list(self._bookmarks)

    def __len__(self) -> int:
        return len(self._bookmarks)

    def is_bookmarked(self, post_id: str) -> bool:
        return any(b.post_id == post_id for b in self._bookmarks)

    def add_bookmark(self, article: Article) -> bool:
        """Bookmark an article. Returns False if it was already saved."""
        if self.is_bookmarked(article.id):
            return False

        record = BookmarkRecord(
            post_id=article.id,
            title=article.title,
            path=article.path,
            category=article.category,
            difficulty=article.difficulty,
            read_time=article.read_time,
            author=article.author.name,
            bookmarked_at=self.now().isoformat(),
            tags=list(article.tags),
        )
        self._bookmarks.insert(0, record)
        self._save()
        return True

    def remove_bookmark(self, post_id: str) -> bool:
        """Remove a bookmark. Returns whether anything was removed."""
        remaining = [b for b in self._bookmarks if b.post_id != post_id]
        if len(remaining) == len(self._bookmarks):
            return False
        self._bookmarks = remaining
        self._save()
        return True

    def toggle_bookmark(self, article: Article) -> bool:
        if self.is_bookmarked(article.id):
            return self.remove_bookmark(article.id)
        return self.add_bookmark(article)

    def get_filtered_bookmarks(
        self,
        category: Optional[str] = None,
        difficulty: Optional[str] = None,
        sort_by: SortBy = "recent",
    ) -> list[BookmarkRecord]:
        """Filter by category/difficulty ("all" or None disables) and sort."""
        filtered = list(self._bookmarks)

        if category and category != "all":
            filtered = [b for b in filtered if b.category == category]

        if difficulty and difficulty != "all":
            filtered = [b for b in filtered if b.difficulty == difficulty]

        if sort_by == "recent":
            filtered.sort(key=_timestamp, reverse=True)
        elif sort_by == "title":
            filtered.sort(key=lambda b: b.title.casefold())
        elif sort_by == "category":
            filtered.sort(key=lambda b: b.category.casefold())

        return filtered

    def search_bookmarks(self, query: str) -> list[BookmarkRecord]:
        """Case-insensitive match on title, author, tags and category."""
        if not query.strip():
            return list(self._bookmarks)

        term = query.lower()
        return [
            b for b in self._bookmarks
            if term in b.title.lower()
            or term in b.author.lower()
            or any(term in tag.lower() for tag in b.tags)
            or term in b.category.lower()
        ]

    def get_bookmark_stats(self) -> BookmarkStats:
        category_counts: dict[str, int] = {}
        difficulty_distribution: dict[str, int] = {}
        for bookmark in self._bookmarks:
            category_counts[bookmark.category] = category_counts.get(bookmark.category, 0) + 1
            difficulty_distribution[bookmark.difficulty] = difficulty_distribution.get(bookmark.difficulty, 0) + 1

        recent = sorted(self._bookmarks, key=_timestamp, reverse=True)[:RECENT_LIMIT]
        return BookmarkStats(
            total_bookmarks=len(self._bookmarks),
            category_counts=category_counts,
            difficulty_distribution=difficulty_distribution,
            recent_bookmarks=recent,
        )

    def clear_all_bookmarks(self) -> None:
        self._bookmarks = []
        self._save()

    def export_bookmarks(self) -> str:
        """Serialize the full set as a JSON array."""
        return json.dumps([b.to_dict() for b in self._bookmarks], indent=2, ensure_ascii=False)

    def import_bookmarks(self, json_data: str) -> bool:
        """Merge bookmarks from exported JSON.

        Only entries whose postId is not already present are added, in
        front of the existing list. Returns False, leaving the set
        untouched, when the input is not a JSON array.
        """
        try:
            imported = json.loads(json_data)
        except (json.JSONDecodeError, TypeError, RecursionError) as e:
            logger.error("Error importing bookmarks: %s", e)
            return False

        if not isinstance(imported, list):
            logger.error("Error importing bookmarks: invalid bookmark data format")
            return False

        existing_ids = {b.post_id for b in self._bookmarks}
        new_bookmarks = []
        for record in _parse_records(imported):
            if record.post_id not in existing_ids:
                existing_ids.add(record.post_id)
                new_bookmarks.append(record)

        if new_bookmarks:
            self._bookmarks = new_bookmarks + self._bookmarks
            self._save()
        logger.info("Imported %d of %d bookmarks", len(new_bookmarks), len(imported))
        return True

    def get_reading_list_summary(self) -> ReadingListSummary:
        total_minutes = sum(_read_minutes(b.read_time) for b in self._bookmarks)
        last = max(self._bookmarks, key=_timestamp).bookmarked_at if self._bookmarks else None
        return ReadingListSummary(
            total_articles=len(self._bookmarks),
            total_read_time=format_read_time(total_minutes),
            total_minutes=total_minutes,
            categories=len({b.category for b in self._bookmarks}),
            last_bookmarked=last,
        )
