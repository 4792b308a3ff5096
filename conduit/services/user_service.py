"""
User service — the identities and follow graph the article aggregate
reads from.

Accounts and social graph are owned elsewhere in a full deployment;
this module keeps just enough of them (create, look up, follow) for
feeds and author profiles to work end to end.
"""
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import insert_ignoring_conflicts
from conduit.exceptions import NotFoundError
from conduit.models import User, follows
from conduit.schemas import UserCreate
from conduit.security import create_access_token

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def profile_to_dict(user: User, following: bool = False) -> dict:
    return {
        "username": user.username,
        "bio": user.bio,
        "image": user.image,
        "following": following,
    }


def _user_to_dict(user: User) -> dict:
    return {
        "username": user.username,
        "email": user.email,
        "bio": user.bio,
        "image": user.image,
        "token": create_access_token(user.id),
    }


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    return await db.get(User, user_id)


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def followed_user_ids(db: AsyncSession, viewer: User | None) -> set[int]:
    """Ids of every user *viewer* follows (empty for anonymous viewers)."""
    if viewer is None:
        return set()
    result = await db.execute(
        select(follows.c.followed_id).where(follows.c.follower_id == viewer.id)
    )
    return set(result.scalars().all())


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_user(db: AsyncSession, data: UserCreate) -> dict:
    """
    Create a user and return it together with a fresh access token.

    Username and email uniqueness is enforced by the schema; the router
    turns the resulting ``IntegrityError`` into a 409.
    """
    user = User(
        username=data.username,
        email=data.email,
        bio=data.bio,
        image=data.image,
    )
    db.add(user)
    await db.flush()
    logger.info("user created username=%s id=%d", user.username, user.id)
    return _user_to_dict(user)


async def get_profile(db: AsyncSession, username: str, viewer: User | None) -> dict:
    user = await get_user_by_username(db, username)
    if user is None:
        raise NotFoundError("profile", "Invalid username")
    following = user.id in await followed_user_ids(db, viewer)
    return profile_to_dict(user, following)


async def follow_user(db: AsyncSession, follower: User, username: str) -> dict:
    """Follow *username*; following someone twice is a no-op."""
    user = await get_user_by_username(db, username)
    if user is None:
        raise NotFoundError("profile", "Invalid username")
    await db.execute(
        insert_ignoring_conflicts(
            db,
            follows,
            ["follower_id", "followed_id"],
            follower_id=follower.id,
            followed_id=user.id,
        )
    )
    logger.info("user %s follows %s", follower.username, user.username)
    return profile_to_dict(user, True)


async def unfollow_user(db: AsyncSession, follower: User, username: str) -> dict:
    user = await get_user_by_username(db, username)
    if user is None:
        raise NotFoundError("profile", "Invalid username")
    await db.execute(
        delete(follows).where(
            follows.c.follower_id == follower.id,
            follows.c.followed_id == user.id,
        )
    )
    return profile_to_dict(user, False)
