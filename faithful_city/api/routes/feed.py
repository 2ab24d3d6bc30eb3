"""
faithful_city.api.routes.feed — Posts, likes, comments, notifications
======================================================================

Includes the live feed WebSocket: the client connects with its token in
the query string and receives the full post list on connect and after
every change in the family.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import Engine

from faithful_city.api.deps import (
    decode_account_id,
    get_current_account,
    get_engine,
    require_member,
)
from faithful_city.database.engine import run_db
from faithful_city.database.models import PostType
from faithful_city.engine.views import AccountView, to_dict
from faithful_city.services import feed_service, notification_service
from faithful_city.services.feed_sync import AccountSession, FeedSynchronizer
from faithful_city.services.profile_service import find_profile

router = APIRouter(tags=["feed"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class _ContentBody(BaseModel):
    content: str = Field(max_length=5000)

    @field_validator("content")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("content must not be blank")
        return value


class PostCreate(_ContentBody):
    type: PostType = PostType.DISCUSSION


class CommentCreate(_ContentBody):
    pass


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------
@router.get("/families/{family_id}/posts")
def list_posts(
    family_id: str,
    account: AccountView = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    require_member(account, family_id)
    return {"posts": [to_dict(p) for p in feed_service.load_posts(engine, family_id)]}


@router.post("/families/{family_id}/posts", status_code=201)
def create_post(
    family_id: str,
    body: PostCreate,
    account: AccountView = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    require_member(account, family_id)
    post = feed_service.create_post(engine, family_id, account.id, body.content, body.type.value)
    return to_dict(post)


@router.post("/posts/{post_id}/like")
def toggle_like(
    post_id: str,
    account: AccountView = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    require_member(account, feed_service.post_family(engine, post_id))
    return {"liked": feed_service.toggle_like(engine, post_id, account.id)}


@router.post("/posts/{post_id}/comments", status_code=201)
def add_comment(
    post_id: str,
    body: CommentCreate,
    account: AccountView = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    require_member(account, feed_service.post_family(engine, post_id))
    comment = feed_service.add_comment(
        engine, post_id, account.id, account.display_name, body.content,
    )
    return to_dict(comment)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
@router.get("/families/{family_id}/notifications")
def list_notifications(
    family_id: str,
    account: AccountView = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    require_member(account, family_id)
    rows = notification_service.load_notifications(engine, family_id, account.id)
    return {"notifications": [to_dict(n) for n in rows]}


# ---------------------------------------------------------------------------
# Live feed
# ---------------------------------------------------------------------------
@router.websocket("/families/{family_id}/posts/live")
async def live_posts(
    websocket: WebSocket,
    family_id: str,
    token: str = Query(...),
    engine: Engine = Depends(get_engine),
):
    try:
        account_id = decode_account_id(token)
    except HTTPException:
        await websocket.close(code=1008)
        return
    account = await run_db(find_profile, engine, account_id)
    if account is None or account.family_id != family_id:
        await websocket.close(code=1008)
        return

    await websocket.accept()
    sync = FeedSynchronizer(
        engine, websocket.app.state.change_feed, AccountSession(account_id, family_id),
    )

    async def _push(posts) -> None:
        await websocket.send_json({"posts": [to_dict(p) for p in posts]})

    try:
        await sync.subscribe_posts(family_id, _push)
        while True:
            # Inbound frames are ignored; this only notices the disconnect.
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Live feed closed for %s", account_id)
    finally:
        sync.dispose_all()
