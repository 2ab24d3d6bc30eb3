"""
faithful_city.api.routes.families — Profiles, families & membership
====================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from faithful_city.api.deps import (
    get_current_account,
    get_current_account_id,
    get_engine,
    require_member,
)
from faithful_city.database.models import Role
from faithful_city.engine.views import AccountView, to_dict
from faithful_city.services import profile_service

router = APIRouter(tags=["families"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ProfileCreate(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    display_name: str = Field(min_length=1, max_length=100)


class FamilyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = ""
    image_url: str | None = None


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------
@router.post("/profiles", status_code=201)
def create_profile(
    body: ProfileCreate,
    account_id: str = Depends(get_current_account_id),
    engine: Engine = Depends(get_engine),
):
    """Create the caller's profile after sign-up."""
    profile = profile_service.create_profile(
        engine, account_id, body.email, body.display_name.strip(),
    )
    return to_dict(profile)


@router.get("/profiles/me")
def get_my_profile(account: AccountView = Depends(get_current_account)):
    return to_dict(account)


# ---------------------------------------------------------------------------
# Families
# ---------------------------------------------------------------------------
@router.get("/families")
def list_families(engine: Engine = Depends(get_engine)):
    return {"families": [to_dict(f) for f in profile_service.list_families(engine)]}


@router.post("/families", status_code=201)
def create_family(
    body: FamilyCreate,
    account: AccountView = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    """Found a family.  The founder joins it as its first admin."""
    family = profile_service.create_family(
        engine, body.name.strip(), body.description, body.image_url,
    )
    profile_service.join_family(engine, account.id, family.id)
    profile_service.promote_to_admin(engine, account.id, family.id)
    return to_dict(profile_service.get_family(engine, family.id))


@router.get("/families/{family_id}")
def get_family(family_id: str, engine: Engine = Depends(get_engine)):
    return to_dict(profile_service.get_family(engine, family_id))


@router.get("/families/{family_id}/members")
def list_members(
    family_id: str,
    account: AccountView = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    require_member(account, family_id)
    members = profile_service.list_family_members(engine, family_id)
    return {"members": [to_dict(m) for m in members]}


@router.post("/families/{family_id}/join")
def join_family(
    family_id: str,
    account: AccountView = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    return to_dict(profile_service.join_family(engine, account.id, family_id))


@router.post("/families/{family_id}/admins/{account_id}")
def promote_admin(
    family_id: str,
    account_id: str,
    account: AccountView = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    """Promote a member.  Only an existing admin of the family may do this."""
    require_member(account, family_id)
    if account.role != Role.ADMIN:
        raise HTTPException(403, "Only family admins can promote members")
    return to_dict(profile_service.promote_to_admin(engine, account_id, family_id))
