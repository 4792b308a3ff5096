"""
Article service — business logic for the Article aggregate.

Design notes
------------
- The aggregate is an article plus its author, tag set, favorites and
  comments.  Every public function takes the ``AsyncSession`` as its
  first argument; the caller owns the transaction (``get_db`` commits
  or rolls back the whole request).
- Relationships are ``lazy="noload"``; articles are always read through
  ``_article_query`` which eager-loads author (``joinedload``) and tags
  (``selectinload``).  Favorite counts, the viewer's favorited flags and
  following flags are fetched with one grouped query each per page.
- Deleting an article is a soft delete: ``deleted_at`` is set, favorites
  and comments are removed, tags stay.  Every read filters on
  ``deleted_at IS NULL``.
- Uniqueness constraints are the only concurrency guard: tags,
  favorites and article authors are written with
  ``INSERT ... ON CONFLICT DO NOTHING``; a new article's slug is
  inserted inside a SAVEPOINT and retried on ``IntegrityError``.
"""
import logging
import re
import secrets

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from conduit.config import settings
from conduit.database import insert_ignoring_conflicts
from conduit.dependencies import resolve_window
from conduit.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from conduit.models import Article, ArticleAuthor, Favorite, Comment, Tag, User, follows, utcnow
from conduit.schemas import ArticleCreate, ArticleUpdate
from conduit.services.tag_service import resolve_tags
from conduit.services.user_service import followed_user_ids, profile_to_dict

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")

INVALID_SLUG = "Invalid slug"


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


def validate_text(field: str, value: str, min_length: int = 1, max_length: int | None = None) -> str:
    max_length = max_length or settings.TEXT_MAX_LENGTH
    stripped = value.strip()
    if not stripped:
        raise ValidationError(field, "can't be blank")
    if len(stripped) < min_length:
        raise ValidationError(field, f"is too short (minimum is {min_length} characters)")
    if len(value) > max_length:
        raise ValidationError(field, f"is too long (maximum is {max_length} characters)")
    return value


def _validate_title(title: str) -> str:
    return validate_text(
        "title",
        title,
        min_length=settings.TITLE_MIN_LENGTH,
        max_length=settings.TITLE_MAX_LENGTH,
    )


def _slug_candidates(title: str):
    """
    Yield up to ``SLUG_MAX_ATTEMPTS`` slugs for *title*: the bare slug
    first, then the bare slug with a short random hex suffix.
    """
    base = slugify(title) or "article"
    yield base
    for _ in range(settings.SLUG_MAX_ATTEMPTS - 1):
        yield f"{base}-{secrets.token_hex(settings.SLUG_SUFFIX_BYTES)}"


async def _slug_taken(db: AsyncSession, slug: str) -> bool:
    """True if any article, deleted ones included, already uses *slug*."""
    result = await db.execute(select(Article.id).where(Article.slug == slug))
    return result.first() is not None


def _article_query():
    return (
        select(Article)
        .where(Article.deleted_at.is_(None))
        .options(
            joinedload(Article.author).joinedload(ArticleAuthor.user),
            selectinload(Article.tags),
        )
        .execution_options(populate_existing=True)
    )


async def get_active_article(db: AsyncSession, slug: str, key: str = "articles") -> Article:
    result = await db.execute(_article_query().where(Article.slug == slug))
    article = result.unique().scalar_one_or_none()
    if article is None:
        raise NotFoundError(key, INVALID_SLUG)
    return article


def _ensure_owner(article: Article, user: User) -> None:
    if article.author.user_id != user.id:
        logger.info("user id=%d denied write on article slug=%s", user.id, article.slug)
        raise ForbiddenError("articles", "You are not the author of this article")


# ---------------------------------------------------------------------------
# Article authors
# ---------------------------------------------------------------------------

async def find_article_author(db: AsyncSession, user: User) -> ArticleAuthor | None:
    result = await db.execute(
        select(ArticleAuthor)
        .where(ArticleAuthor.user_id == user.id)
        .options(joinedload(ArticleAuthor.user))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_article_author(db: AsyncSession, user: User) -> ArticleAuthor:
    """Return *user*'s ArticleAuthor, creating it on first use."""
    author = await find_article_author(db, user)
    if author is None:
        await db.execute(
            insert_ignoring_conflicts(db, ArticleAuthor, ["user_id"], user_id=user.id)
        )
        author = await find_article_author(db, user)
        logger.debug("article author created for user id=%d", user.id)
    return author


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _isoformat(value) -> str | None:
    return value.isoformat() if value else None


def _article_to_dict(article: Article, favorited: bool, favorites_count: int, following: bool) -> dict:
    return {
        "slug": article.slug,
        "title": article.title,
        "description": article.description,
        "body": article.body,
        "tagList": sorted(tag.name for tag in article.tags),
        "createdAt": _isoformat(article.created_at),
        "updatedAt": _isoformat(article.updated_at),
        "favorited": favorited,
        "favoritesCount": favorites_count,
        "author": profile_to_dict(article.author.user, following),
    }


async def _serialize_articles(
    db: AsyncSession, articles: list[Article], viewer: User | None
) -> list[dict]:
    """
    Serialise a page of articles for *viewer*.

    Issues at most three extra queries regardless of page size:
    favorite counts, the viewer's favorites, and the viewer's follows.
    """
    if not articles:
        return []
    ids = [article.id for article in articles]

    counts_q = (
        select(Favorite.article_id, func.count(Favorite.id))
        .where(Favorite.article_id.in_(ids))
        .group_by(Favorite.article_id)
    )
    counts = {article_id: count for article_id, count in (await db.execute(counts_q)).all()}

    favorited_ids: set[int] = set()
    following_ids: set[int] = set()
    if viewer is not None:
        favorited_q = (
            select(Favorite.article_id)
            .join(ArticleAuthor, Favorite.author_id == ArticleAuthor.id)
            .where(ArticleAuthor.user_id == viewer.id, Favorite.article_id.in_(ids))
        )
        favorited_ids = set((await db.execute(favorited_q)).scalars().all())
        following_ids = await followed_user_ids(db, viewer)

    return [
        _article_to_dict(
            article,
            favorited=article.id in favorited_ids,
            favorites_count=counts.get(article.id, 0),
            following=article.author.user_id in following_ids,
        )
        for article in articles
    ]


async def _serialize_article(db: AsyncSession, article: Article, viewer: User | None) -> dict:
    return (await _serialize_articles(db, [article], viewer))[0]


async def _page(db: AsyncSession, conditions: list, limit, offset, viewer: User | None) -> dict:
    """Run a filtered, newest-first, windowed article query plus its total count."""
    limit, offset = resolve_window(limit, offset)

    count_q = select(func.count(Article.id)).where(Article.deleted_at.is_(None), *conditions)
    total: int = (await db.execute(count_q)).scalar_one()

    articles_q = (
        _article_query()
        .where(*conditions)
        .order_by(Article.created_at.desc(), Article.id.desc())
        .offset(offset)
        .limit(limit)
    )
    articles = (await db.execute(articles_q)).unique().scalars().all()

    return {
        "articles": await _serialize_articles(db, list(articles), viewer),
        "articlesCount": total,
    }


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_article(db: AsyncSession, user: User, data: ArticleCreate) -> dict:
    """
    Create an article authored by *user* and return it serialised.

    Title, description and body are validated before anything is
    written; tags are resolved or created by exact name.

    Each slug candidate is inserted inside a SAVEPOINT, so a candidate
    claimed by a concurrent writer after the existence check only costs
    a retry.  ConflictError once every candidate is taken.
    """
    title = _validate_title(data.title)
    description = validate_text("description", data.description)
    body = validate_text("body", data.body)

    author = await get_article_author(db, user)
    for slug in _slug_candidates(title):
        if await _slug_taken(db, slug):
            continue
        # A rolled-back savepoint expires the tags, so resolve them per attempt.
        tags = await resolve_tags(db, data.tagList)
        try:
            async with db.begin_nested():
                article = Article(
                    slug=slug,
                    title=title,
                    description=description,
                    body=body,
                    author=author,
                    tags=tags,
                )
                db.add(article)
                await db.flush()
        except IntegrityError:
            logger.info("slug %s claimed concurrently, retrying", slug)
            continue

        logger.info("article created slug=%s author=%s", article.slug, user.username)
        return _article_to_dict(article, favorited=False, favorites_count=0, following=False)

    logger.warning("slug space exhausted for title=%r", title)
    raise ConflictError("slug", "Could not generate a unique slug")


async def get_article(db: AsyncSession, slug: str, viewer: User | None = None) -> dict:
    """Return the active article *slug*; NotFoundError if absent or deleted."""
    article = await get_active_article(db, slug)
    return await _serialize_article(db, article, viewer)


async def list_articles(
    db: AsyncSession,
    tag: str | None = None,
    author: str | None = None,
    favorited: str | None = None,
    limit=None,
    offset=None,
    viewer: User | None = None,
) -> dict:
    """
    Return a newest-first page of active articles matching every
    supplied filter, plus the total number of matches.

    *author* and *favorited* are usernames; unknown names simply match
    nothing.
    """
    conditions = []
    if tag:
        conditions.append(Article.tags.any(Tag.name == tag))
    if author:
        conditions.append(Article.author.has(ArticleAuthor.user.has(User.username == author)))
    if favorited:
        favorited_by = (
            select(Favorite.article_id)
            .join(ArticleAuthor, Favorite.author_id == ArticleAuthor.id)
            .join(User, ArticleAuthor.user_id == User.id)
            .where(User.username == favorited)
        )
        conditions.append(Article.id.in_(favorited_by))
    return await _page(db, conditions, limit, offset, viewer)


async def get_feed(db: AsyncSession, viewer: User, limit=None, offset=None) -> dict:
    """Articles written by users *viewer* follows, newest first."""
    followed = select(follows.c.followed_id).where(follows.c.follower_id == viewer.id)
    conditions = [Article.author.has(ArticleAuthor.user_id.in_(followed))]
    return await _page(db, conditions, limit, offset, viewer)


async def update_article(db: AsyncSession, slug: str, user: User, data: ArticleUpdate) -> dict:
    """
    Apply the fields present in *data* to the article *slug*.

    Only the owner may update.  A present ``tagList`` replaces the tag
    set wholesale.  The slug is kept even when the title changes, so
    published URLs stay valid.
    """
    article = await get_active_article(db, slug)
    _ensure_owner(article, user)

    changes = data.present_fields()
    tag_names = changes.pop("tagList", None)

    if changes.get("title") is not None:
        article.title = _validate_title(changes["title"])
    if changes.get("description") is not None:
        article.description = validate_text("description", changes["description"])
    if changes.get("body") is not None:
        article.body = validate_text("body", changes["body"])
    if tag_names is not None:
        article.tags = await resolve_tags(db, tag_names)

    article.updated_at = utcnow()
    await db.flush()

    logger.info("article updated slug=%s fields=%s", slug, sorted(data.model_fields_set))
    return await _serialize_article(db, article, user)


async def delete_article(db: AsyncSession, slug: str, user: User) -> None:
    """
    Soft-delete the article *slug* and drop its favorites and comments.

    Deleting a slug that does not exist (or is already deleted) succeeds
    silently.
    """
    result = await db.execute(_article_query().where(Article.slug == slug))
    article = result.unique().scalar_one_or_none()
    if article is None:
        logger.debug("delete of unknown slug=%s ignored", slug)
        return
    _ensure_owner(article, user)

    article.deleted_at = utcnow()
    await db.execute(delete(Favorite).where(Favorite.article_id == article.id))
    await db.execute(delete(Comment).where(Comment.article_id == article.id))
    await db.flush()
    logger.info("article deleted slug=%s", slug)


async def favorite_article(db: AsyncSession, slug: str, user: User) -> dict:
    """Mark the article as favorited by *user*; repeating it changes nothing."""
    article = await get_active_article(db, slug)
    author = await get_article_author(db, user)
    await db.execute(
        insert_ignoring_conflicts(
            db,
            Favorite,
            ["author_id", "article_id"],
            author_id=author.id,
            article_id=article.id,
        )
    )
    return await _serialize_article(db, article, user)


async def unfavorite_article(db: AsyncSession, slug: str, user: User) -> dict:
    article = await get_active_article(db, slug)
    author = await find_article_author(db, user)
    if author is not None:
        await db.execute(
            delete(Favorite).where(
                Favorite.author_id == author.id,
                Favorite.article_id == article.id,
            )
        )
    return await _serialize_article(db, article, user)
