"""
Tag service — tags are shared across articles and never deleted when an
article lets go of them.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.database import insert_ignoring_conflicts
from conduit.exceptions import ValidationError
from conduit.models import Tag


def normalize_tag_names(names: list[str]) -> list[str]:
    """
    Drop blanks and repeats, keeping first-seen order.  Case is kept.

    Raises ValidationError keyed ``tagList`` for a name longer than
    ``settings.TAG_MAX_LENGTH``.
    """
    cleaned = list(dict.fromkeys(name.strip() for name in names if name and name.strip()))
    for name in cleaned:
        if len(name) > settings.TAG_MAX_LENGTH:
            raise ValidationError(
                "tagList", f"is too long (maximum is {settings.TAG_MAX_LENGTH} characters)"
            )
    return cleaned


async def resolve_or_create_tag(db: AsyncSession, name: str) -> Tag:
    """Return the tag called exactly *name*, creating it if needed."""
    result = await db.execute(select(Tag).where(Tag.name == name))
    tag = result.scalar_one_or_none()
    if tag is not None:
        return tag

    await db.execute(insert_ignoring_conflicts(db, Tag, ["name"], name=name))
    result = await db.execute(select(Tag).where(Tag.name == name))
    return result.scalar_one()


async def resolve_tags(db: AsyncSession, names: list[str]) -> list[Tag]:
    return [await resolve_or_create_tag(db, name) for name in normalize_tag_names(names)]


async def list_tags(db: AsyncSession) -> list[str]:
    result = await db.execute(select(Tag.name).order_by(Tag.name))
    return list(result.scalars().all())
