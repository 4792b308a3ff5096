from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from conduit.database import Base


def utcnow() -> datetime:
    # Python-side so timestamps keep sub-second precision on every backend
    # (newest-first ordering depends on it).
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Association tables
# ---------------------------------------------------------------------------
article_tags = Table(
    "article_tags",
    Base.metadata,
    Column("article_id", Integer, ForeignKey("articles.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)

follows = Table(
    "follows",
    Base.metadata,
    Column("follower_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("followed_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


# ---------------------------------------------------------------------------
# User (identity; owned by the accounts side, read here)
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )


# ---------------------------------------------------------------------------
# ArticleAuthor — the user as seen from article context
# ---------------------------------------------------------------------------
class ArticleAuthor(Base):
    __tablename__ = "article_authors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    # lazy="noload" everywhere: services load what they need explicitly.
    user: Mapped["User"] = relationship("User", lazy="noload")


# ---------------------------------------------------------------------------
# Tag
# ---------------------------------------------------------------------------
class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)

    articles: Mapped[List["Article"]] = relationship(
        "Article", secondary=article_tags, back_populates="tags", lazy="noload"
    )


# ---------------------------------------------------------------------------
# Article
# ---------------------------------------------------------------------------
class Article(Base):
    __tablename__ = "articles"

    __table_args__ = (
        # Author listing / feed, newest first
        Index("ix_articles_author_id_created_at", "author_id", "created_at"),
        # Global listing skips soft-deleted rows
        Index("ix_articles_deleted_at_created_at", "deleted_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Unique across deleted rows too: a slug is never handed out twice.
    slug: Mapped[str] = mapped_column(String(350), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("article_authors.id"), nullable=False, index=True
    )

    author: Mapped["ArticleAuthor"] = relationship("ArticleAuthor", lazy="noload")
    tags: Mapped[List["Tag"]] = relationship(
        "Tag", secondary=article_tags, back_populates="articles", lazy="noload"
    )


# ---------------------------------------------------------------------------
# Favorite
# ---------------------------------------------------------------------------
class Favorite(Base):
    __tablename__ = "favorites"

    __table_args__ = (
        UniqueConstraint("author_id", "article_id", name="uq_favorites_author_article"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("article_authors.id", ondelete="CASCADE"), nullable=False
    )
    article_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True
    )


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    article_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("article_authors.id", ondelete="CASCADE"), nullable=False
    )

    article: Mapped["Article"] = relationship("Article", lazy="noload")
    author: Mapped["ArticleAuthor"] = relationship("ArticleAuthor", lazy="noload")
