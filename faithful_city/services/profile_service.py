"""
faithful_city.services.profile_service — Accounts & Family Membership
======================================================================

Profile creation, family listing, joining, and admin promotion.

Two gaps are deliberate and documented rather than closed here:
  * ``member_count`` is bumped in its own transaction after a join commits.
    If the bump fails the join still succeeds and the count goes stale.
  * ``promote_to_admin`` counts admins and then writes, with no lock in
    between, so two simultaneous promotions can both pass the cap check.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from faithful_city.constants import MAX_FAMILY_ADMINS
from faithful_city.database.engine import get_session
from faithful_city.database.models import Account, Family, Role
from faithful_city.engine.changefeed import notify_change
from faithful_city.engine.views import AccountView, FamilyView
from faithful_city.errors import ConflictError, NotFoundError, PolicyError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------
def create_profile(
    engine,
    account_id: str,
    email: str,
    display_name: str,
    family_id: str | None = None,
    role: str = Role.MEMBER.value,
) -> AccountView:
    """Create the profile row for a freshly signed-up identity.

    Raises
    ------
    ConflictError
        If a profile with *account_id* already exists.
    """
    role = Role(role).value
    try:
        with get_session(engine, expire_on_commit=False) as session:
            if session.get(Account, account_id) is not None:
                raise ConflictError(f"Account {account_id} already exists")
            account = Account(
                id=account_id,
                email=email,
                display_name=display_name,
                family_id=family_id or None,
                role=role,
                quiz_score=0,
                quiz_streak=0,
            )
            session.add(account)
            session.flush()
            notify_change(
                session, "accounts", "INSERT",
                family_id=account.family_id, row_id=account.id,
            )
    except IntegrityError as exc:
        # Lost a race with a concurrent create for the same identity.
        raise ConflictError(f"Account {account_id} already exists") from exc

    logger.info("Created profile %s (%s)", account_id, display_name)
    return AccountView.from_row(account)


def find_profile(engine, account_id: str) -> AccountView | None:
    with get_session(engine) as session:
        account = session.get(Account, account_id)
        return AccountView.from_row(account) if account else None


def get_profile(engine, account_id: str) -> AccountView:
    """Fetch a profile or raise :class:`NotFoundError`."""
    profile = find_profile(engine, account_id)
    if profile is None:
        raise NotFoundError(f"Account {account_id} not found")
    return profile


def list_family_members(engine, family_id: str) -> list[AccountView]:
    with get_session(engine) as session:
        rows = session.scalars(
            select(Account).where(Account.family_id == family_id).order_by(Account.created_at)
        ).all()
        return [AccountView.from_row(a) for a in rows]


# ---------------------------------------------------------------------------
# Families
# ---------------------------------------------------------------------------
def create_family(
    engine, name: str, description: str = "", image_url: str | None = None,
) -> FamilyView:
    with get_session(engine, expire_on_commit=False) as session:
        family = Family(name=name, description=description, image_url=image_url)
        session.add(family)
        session.flush()
        notify_change(session, "families", "INSERT", family_id=family.id, row_id=family.id)
    logger.info("Created family %s (%s)", family.id, name)
    return FamilyView.from_row(family)


def list_families(engine) -> list[FamilyView]:
    """All families, newest first."""
    with get_session(engine) as session:
        rows = session.scalars(select(Family).order_by(Family.created_at.desc())).all()
        return [FamilyView.from_row(f) for f in rows]


def get_family(engine, family_id: str) -> FamilyView:
    with get_session(engine) as session:
        family = session.get(Family, family_id)
        if family is None:
            raise NotFoundError(f"Family {family_id} not found")
        return FamilyView.from_row(family)


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------
def join_family(engine, account_id: str, family_id: str) -> AccountView:
    """Point the account at *family_id*, then best-effort bump the count.

    The membership change is committed first and is the operation's result.
    A failed count increment is logged and swallowed.
    """
    with get_session(engine, expire_on_commit=False) as session:
        account = session.get(Account, account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        if session.get(Family, family_id) is None:
            raise NotFoundError(f"Family {family_id} not found")
        account.family_id = family_id
        notify_change(session, "accounts", "UPDATE", family_id=family_id, row_id=account_id)

    try:
        _increment_member_count(engine, family_id)
    except Exception:
        logger.exception("Error updating member count for family %s", family_id)

    logger.info("Account %s joined family %s", account_id, family_id)
    return AccountView.from_row(account)


def _increment_member_count(engine, family_id: str) -> None:
    with get_session(engine) as session:
        session.execute(
            update(Family)
            .where(Family.id == family_id)
            .values(member_count=Family.member_count + 1)
        )
        notify_change(session, "families", "UPDATE", family_id=family_id, row_id=family_id)


def promote_to_admin(engine, account_id: str, family_id: str) -> AccountView:
    """Grant the admin role, refusing once the family has two admins.

    Raises
    ------
    PolicyError
        If the target is not a member of *family_id*, or the family already
        has :data:`MAX_FAMILY_ADMINS` admins, even when the target is one of
        them.
    NotFoundError
        If the target account does not exist.
    """
    with get_session(engine, expire_on_commit=False) as session:
        account = session.get(Account, account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        if account.family_id != family_id:
            raise PolicyError(f"Account {account_id} is not a member of this family")

        members = session.scalars(select(Account).where(Account.family_id == family_id)).all()
        admin_count = sum(1 for m in members if m.role == Role.ADMIN.value)
        if admin_count >= MAX_FAMILY_ADMINS:
            raise PolicyError("max admins reached")

        account.role = Role.ADMIN.value
        notify_change(session, "accounts", "UPDATE", family_id=family_id, row_id=account_id)

    logger.info("Promoted %s to admin of family %s", account_id, family_id)
    return AccountView.from_row(account)
