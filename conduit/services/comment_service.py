"""
Comment service — comments hang off an active article and are written
by an ArticleAuthor.

Comments of a soft-deleted article are removed together with it and are
never returned: every lookup joins back to an article with
``deleted_at IS NULL``.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from conduit.config import settings
from conduit.exceptions import ForbiddenError, NotFoundError
from conduit.models import Article, ArticleAuthor, Comment, User
from conduit.services.article_service import (
    get_active_article,
    validate_text,
    get_article_author,
)
from conduit.services.user_service import followed_user_ids, profile_to_dict

logger = logging.getLogger(__name__)

INVALID_ID = "Invalid id"


def _comment_to_dict(comment: Comment, following: bool) -> dict:
    return {
        "id": comment.id,
        "createdAt": comment.created_at.isoformat() if comment.created_at else None,
        "updatedAt": comment.updated_at.isoformat() if comment.updated_at else None,
        "body": comment.body,
        "author": profile_to_dict(comment.author.user, following),
    }


def _parse_comment_id(raw) -> int | None:
    try:
        comment_id = int(raw)
    except (TypeError, ValueError):
        return None
    # Ids past the INTEGER column range cannot exist.
    if comment_id <= 0 or comment_id > settings.MAX_INTEGER:
        return None
    return comment_id


async def add_comment(db: AsyncSession, slug: str, user: User, body: str) -> dict:
    """
    Add a comment by *user* to the article *slug*.

    Raises NotFoundError keyed ``comment`` when the article is missing.
    """
    article = await get_active_article(db, slug, key="comment")
    body = validate_text("body", body)

    author = await get_article_author(db, user)
    comment = Comment(body=body, article_id=article.id, author=author)
    db.add(comment)
    await db.flush()

    logger.info("comment id=%d added to slug=%s by %s", comment.id, slug, user.username)
    return _comment_to_dict(comment, following=False)


async def list_comments(db: AsyncSession, slug: str, viewer: User | None = None) -> list[dict]:
    """Return every comment on the article *slug*, newest first."""
    article = await get_active_article(db, slug, key="comments")

    q = (
        select(Comment)
        .where(Comment.article_id == article.id)
        .options(joinedload(Comment.author).joinedload(ArticleAuthor.user))
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    comments = (await db.execute(q)).unique().scalars().all()
    following_ids = await followed_user_ids(db, viewer)
    return [
        _comment_to_dict(comment, comment.author.user_id in following_ids)
        for comment in comments
    ]


async def delete_comment(db: AsyncSession, slug: str | None, comment_id, user: User) -> None:
    """
    Delete comment *comment_id* if *user* wrote it.

    A malformed id, an unknown id, a comment whose article is deleted,
    or one that belongs to a different article than *slug* all raise
    NotFoundError("comment", "Invalid id").
    """
    parsed_id = _parse_comment_id(comment_id)
    if parsed_id is None:
        raise NotFoundError("comment", INVALID_ID)

    q = (
        select(Comment)
        .join(Article, Comment.article_id == Article.id)
        .where(Comment.id == parsed_id, Article.deleted_at.is_(None))
        .options(
            joinedload(Comment.article),
            joinedload(Comment.author).joinedload(ArticleAuthor.user),
        )
    )
    comment = (await db.execute(q)).unique().scalar_one_or_none()
    if comment is None or (slug is not None and comment.article.slug != slug):
        raise NotFoundError("comment", INVALID_ID)

    if comment.author.user_id != user.id:
        logger.info("user id=%d denied delete of comment id=%d", user.id, parsed_id)
        raise ForbiddenError("comment", "You are not the author of this comment")

    await db.delete(comment)
    await db.flush()
    logger.info("comment id=%d deleted", parsed_id)

