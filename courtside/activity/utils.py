"""Utility functions for activity data access."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore

from courtside.core.constants import FIRESTORE_IN_QUERY_LIMIT

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client

logger = logging.getLogger(__name__)

EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


def utcnow() -> datetime.datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def _from_epoch_seconds(seconds: float) -> datetime.datetime | None:
    # Out-of-range or non-finite values are treated as unreadable.
    try:
        return EPOCH + datetime.timedelta(seconds=seconds)
    except (OverflowError, ValueError):
        return None


def to_datetime(value: Any) -> datetime.datetime | None:
    """Coerce a stored timestamp into an aware UTC datetime.

    Accepts datetimes (naive ones are assumed UTC), dates, Firestore
    timestamps, ``{"seconds": ...}`` maps, epoch seconds and ISO-8601
    strings. Anything else yields ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=datetime.timezone.utc)
        return value.astimezone(datetime.timezone.utc)
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time.min).replace(
            tzinfo=datetime.timezone.utc
        )
    if hasattr(value, "to_datetime"):
        return to_datetime(value.to_datetime())
    if isinstance(value, dict) and "seconds" in value:
        try:
            seconds = float(value["seconds"]) + float(value.get("nanoseconds", 0)) / 1e9
        except (TypeError, ValueError):
            return None
        return _from_epoch_seconds(seconds)
    if isinstance(value, (int, float)):
        return _from_epoch_seconds(value)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return to_datetime(parsed)
    return None


def chunked(
    values: Iterable[Any], size: int = FIRESTORE_IN_QUERY_LIMIT
) -> Iterator[list[Any]]:
    """Yield successive lists of at most ``size`` values."""
    chunk: list[Any] = []
    for value in values:
        chunk.append(value)
        if len(chunk) == size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


def fetch_documents(
    db: Client, collection: str, doc_ids: Iterable[str]
) -> dict[str, DocumentSnapshot]:
    """Batch-fetch documents by id, one round-trip per chunk.

    A chunk that fails is logged and skipped; the rest are still returned.
    """
    found: dict[str, DocumentSnapshot] = {}
    unique_ids = list(dict.fromkeys(doc_id for doc_id in doc_ids if doc_id))
    for chunk in chunked(unique_ids):
        refs = [db.collection(collection).document(doc_id) for doc_id in chunk]
        try:
            snapshots = cast(list[Any], db.get_all(refs))
        except Exception as e:
            logger.error(f"Error fetching {collection} documents {chunk}: {e}")
            continue
        for snap in snapshots:
            if snap.exists:
                found[snap.id] = snap
    return found


def query_in(
    db: Client,
    collection: str,
    field: str,
    values: Iterable[Any],
    *filters: tuple[str, str, Any],
) -> dict[Any, list[DocumentSnapshot] | None]:
    """Run ``field in values`` queries in chunks and group results by value.

    The result maps every requested value to its matching documents, or to
    ``None`` when the chunk holding that value could not be read.
    """
    grouped: dict[Any, list[DocumentSnapshot] | None] = {}
    unique_values = list(dict.fromkeys(values))
    for chunk in chunked(unique_values):
        query = db.collection(collection).where(
            filter=firestore.FieldFilter(field, "in", chunk)
        )
        for f_path, op, value in filters:
            query = query.where(filter=firestore.FieldFilter(f_path, op, value))
        try:
            docs = list(query.stream())
        except Exception as e:
            logger.error(f"Error querying {collection} by {field} in {chunk}: {e}")
            for value in chunk:
                grouped[value] = None
            continue
        for value in chunk:
            grouped[value] = []
        for doc in docs:
            key = (doc.to_dict() or {}).get(field)
            bucket = grouped.get(key)
            if bucket is not None:
                bucket.append(doc)
    return grouped
