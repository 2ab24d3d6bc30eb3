"""
faithful_city.services.media_service — Photo & Audio Uploads
=============================================================

Upload order is blob first, metadata second:

    1. Derive the media type from the MIME prefix (``image/*`` → photo,
       anything else → audio).
    2. Generate a collision-resistant key: ``<epoch ms>_<random hex><.ext>``
       and resolve its public URL.
    3. Write the bytes under ``<family_id>/<key>`` → :class:`UploadError`
       on failure (or on an unresolvable URL), and nothing is stored.
    4. Insert the metadata row →
       :class:`PersistError` on failure.  The stored blob is left behind
       (orphaned); nothing cleans it up.
    5. Best-effort "New Media Uploaded" broadcast.
"""

from __future__ import annotations

import logging
import secrets
import time
from pathlib import PurePosixPath

from sqlalchemy import select

from faithful_city.constants import MEDIA_UPLOADED_TITLE
from faithful_city.database.engine import get_session
from faithful_city.database.models import Account, Media, MediaType, NotificationCategory
from faithful_city.engine.changefeed import notify_change
from faithful_city.engine.views import MediaView
from faithful_city.errors import PersistError, UploadError
from faithful_city.services.notification_service import notify_best_effort
from faithful_city.services.storage import ObjectStorage

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 25 * 1024 * 1024  # 25 MB


def media_type_for(mime_type: str | None) -> str:
    if mime_type and mime_type.startswith("image/"):
        return MediaType.PHOTO.value
    return MediaType.AUDIO.value


def make_storage_key(file_name: str) -> str:
    """``<epoch ms>_<8 hex chars><original extension>``."""
    ext = PurePosixPath(file_name).suffix.lower()
    return f"{int(time.time() * 1000)}_{secrets.token_hex(4)}{ext}"


def upload_media(
    engine,
    storage: ObjectStorage,
    family_id: str,
    account_id: str,
    file_bytes: bytes,
    file_name: str,
    mime_type: str | None,
    title: str,
    description: str | None = None,
    *,
    max_size: int = MAX_FILE_SIZE,
) -> MediaView:
    """Store an uploaded file and record its metadata.

    Raises
    ------
    UploadError
        If the file is too large or the storage write fails.
    PersistError
        If the metadata insert fails after the blob was stored.
    """
    if len(file_bytes) > max_size:
        raise UploadError(
            f"File too large: {len(file_bytes)} bytes (max {max_size // 1024 // 1024}MB)"
        )

    media_type = media_type_for(mime_type)
    key = f"{family_id}/{make_storage_key(file_name)}"

    try:
        url = storage.public_url(key)
    except Exception as exc:
        logger.exception("No public URL for %s", key)
        raise UploadError(f"Could not store {file_name!r}") from exc

    try:
        storage.write(key, file_bytes, mime_type)
    except Exception as exc:
        logger.exception("Blob write failed for %s", key)
        raise UploadError(f"Could not store {file_name!r}") from exc

    try:
        with get_session(engine, expire_on_commit=False) as session:
            media = Media(
                family_id=family_id,
                type=media_type,
                title=title,
                description=description or None,
                url=url,
                storage_key=key,
                uploaded_by=account_id,
            )
            session.add(media)
            session.flush()
            notify_change(session, "media", "INSERT", family_id=family_id, row_id=media.id)
            uploader_name = session.scalar(
                select(Account.display_name).where(Account.id == account_id)
            )
    except Exception as exc:
        logger.error("Metadata insert failed; blob %s is orphaned", key)
        raise PersistError(f"Stored {file_name!r} but could not record it") from exc

    logger.info("Uploaded %s %s to family %s", media_type, key, family_id)
    notify_best_effort(
        engine,
        family_id,
        MEDIA_UPLOADED_TITLE,
        f"{uploader_name or 'Someone'} uploaded: {title}",
        NotificationCategory.MEDIA.value,
    )
    return MediaView.from_row(media)


def list_media(engine, family_id: str) -> list[MediaView]:
    """All of the family's media, newest first."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(Media)
            .where(Media.family_id == family_id)
            .order_by(Media.uploaded_at.desc())
        ).all()
        return [MediaView.from_row(m) for m in rows]
