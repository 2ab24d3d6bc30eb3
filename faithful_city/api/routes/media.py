"""
faithful_city.api.routes.media — Family photo & audio library
==============================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Form, UploadFile
from sqlalchemy import Engine

from faithful_city.api.deps import (
    get_config,
    get_current_account,
    get_engine,
    get_storage,
    require_member,
)
from faithful_city.config import FaithfulCityConfig
from faithful_city.database.engine import run_db
from faithful_city.engine.views import AccountView, to_dict
from faithful_city.services import media_service
from faithful_city.services.storage import ObjectStorage

router = APIRouter(tags=["media"])
logger = logging.getLogger(__name__)


@router.get("/families/{family_id}/media")
def list_media(
    family_id: str,
    account: AccountView = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    """List the family's media, newest first."""
    require_member(account, family_id)
    return {"media": [to_dict(m) for m in media_service.list_media(engine, family_id)]}


@router.post("/families/{family_id}/media", status_code=201)
async def upload_media(
    family_id: str,
    file: UploadFile,
    title: str = Form(..., min_length=1, max_length=200),
    description: str | None = Form(None),
    account: AccountView = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
    storage: ObjectStorage = Depends(get_storage),
    cfg: FaithfulCityConfig = Depends(get_config),
):
    """Upload a photo or audio file to the family library."""
    require_member(account, family_id)
    content = await file.read()
    media = await run_db(
        media_service.upload_media,
        engine,
        storage,
        family_id,
        account.id,
        content,
        file.filename or "upload",
        file.content_type,
        title.strip(),
        description,
        max_size=cfg.max_upload_mb * 1024 * 1024,
    )
    return to_dict(media)
