"""Short-code -> record storage with a quality-preferring metadata merge.

``put`` is last-writer-wins: concurrent refreshes for the same code never
corrupt a record, the later merge simply lands on top of the earlier one.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable, Optional, Protocol

from sqlalchemy import select

from linkpreview.models import LinkRecord, PageMetadata
from linkpreview.models.database import DatabaseManager, Link, utcnow
from linkpreview.utils.url_normalizer import is_icon_proxy_url, normalize_url

logger = logging.getLogger(__name__)

MIN_PATCH_TITLE_LENGTH = 3
MIN_PATCH_DESCRIPTION_LENGTH = 10

Clock = Callable[[], datetime]


def merge_preferring_quality(existing: PageMetadata, patch: PageMetadata) -> PageMetadata:
    """Merge ``patch`` over ``existing``, only where the patch looks better.

    - title: replaced only by a patch title longer than 3 characters
    - description: replaced only by a patch description longer than 10 characters
    - image: replaced by any patch image that is not an icon-proxy URL
    - favicon: replaced whenever the patch has one
    """
    title = existing.title
    if patch.title and len(patch.title) > MIN_PATCH_TITLE_LENGTH:
        title = patch.title

    description = existing.description
    if patch.description and len(patch.description) > MIN_PATCH_DESCRIPTION_LENGTH:
        description = patch.description

    image = existing.image
    if patch.image and not is_icon_proxy_url(patch.image):
        image = patch.image

    return PageMetadata(
        title=title,
        description=description,
        image=image,
        favicon=patch.favicon or existing.favicon,
    )


class LinkStore(Protocol):
    def get(self, short_code: str) -> Optional[LinkRecord]: ...

    def put(self, short_code: str, patch: PageMetadata) -> Optional[LinkRecord]: ...

    def lookup_by_url(self, url: str) -> Optional[str]: ...

    def add(
        self,
        short_code: str,
        original_url: str,
        metadata: Optional[PageMetadata] = None,
    ) -> LinkRecord: ...


class InMemoryLinkStore:
    """Dict-backed store for tests, the CLI and single-process deployments."""

    def __init__(self, clock: Clock = utcnow):
        self._records: dict[str, LinkRecord] = {}
        self._by_url: dict[str, str] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, short_code: str) -> Optional[LinkRecord]:
        with self._lock:
            record = self._records.get(short_code)
            if record is None:
                return None
            return LinkRecord(
                short_code=record.short_code,
                original_url=record.original_url,
                metadata=record.metadata.copy(),
                last_updated_at=record.last_updated_at,
            )

    def put(self, short_code: str, patch: PageMetadata) -> Optional[LinkRecord]:
        with self._lock:
            record = self._records.get(short_code)
            if record is None:
                logger.warning(f"No existing record for short code {short_code}")
                return None
            record.metadata = merge_preferring_quality(record.metadata, patch)
            record.last_updated_at = self._clock()
        logger.info(f"Updated metadata for {short_code}")
        return self.get(short_code)

    def lookup_by_url(self, url: str) -> Optional[str]:
        key = normalize_url(url)
        with self._lock:
            short_code = self._by_url.get(key)
            if short_code is None:
                return None
            record = self._records.get(short_code)
            if record is None or record.original_url != key:
                # The code was re-added for another URL
                logger.info(f"Dropping stale URL mapping {key} -> {short_code}")
                del self._by_url[key]
                return None
            return short_code

    def add(
        self,
        short_code: str,
        original_url: str,
        metadata: Optional[PageMetadata] = None,
    ) -> LinkRecord:
        normalized = normalize_url(original_url)
        with self._lock:
            self._records[short_code] = LinkRecord(
                short_code=short_code,
                original_url=normalized,
                metadata=(metadata or PageMetadata()).copy(),
                last_updated_at=self._clock(),
            )
            self._by_url[normalized] = short_code
        return self.get(short_code)


class DatabaseLinkStore:
    """SQLAlchemy-backed store over the ``links`` table."""

    def __init__(self, db: DatabaseManager, clock: Clock = utcnow):
        self.db = db
        self._clock = clock

    @staticmethod
    def _to_record(row: Link) -> LinkRecord:
        return LinkRecord(
            short_code=row.short_code,
            original_url=row.original_url,
            metadata=PageMetadata(
                title=row.title,
                description=row.description,
                image=row.image,
                favicon=row.favicon,
            ),
            last_updated_at=row.last_updated_at,
        )

    def get(self, short_code: str) -> Optional[LinkRecord]:
        with self.db.get_session() as session:
            row = session.get(Link, short_code)
            return self._to_record(row) if row is not None else None

    def put(self, short_code: str, patch: PageMetadata) -> Optional[LinkRecord]:
        with self.db.get_session() as session:
            row = session.get(Link, short_code)
            if row is None:
                logger.warning(f"No existing record for short code {short_code}")
                return None
            current = self._to_record(row).metadata
            merged = merge_preferring_quality(current, patch)
            row.title = merged.title
            row.description = merged.description
            row.image = merged.image
            row.favicon = merged.favicon
            row.last_updated_at = self._clock()
            session.flush()
            record = self._to_record(row)
        logger.info(f"Updated metadata for {short_code}")
        return record

    def lookup_by_url(self, url: str) -> Optional[str]:
        key = normalize_url(url)
        with self.db.get_session() as session:
            return session.execute(
                select(Link.short_code).where(Link.original_url == key)
            ).scalar_one_or_none()

    def add(
        self,
        short_code: str,
        original_url: str,
        metadata: Optional[PageMetadata] = None,
    ) -> LinkRecord:
        normalized = normalize_url(original_url)
        metadata = metadata or PageMetadata()
        now = self._clock()
        with self.db.get_session() as session:
            row = Link(
                short_code=short_code,
                original_url=normalized,
                title=metadata.title,
                description=metadata.description,
                image=metadata.image,
                favicon=metadata.favicon,
                created_at=now,
                last_updated_at=now,
            )
            session.add(row)
            session.flush()
            return self._to_record(row)
