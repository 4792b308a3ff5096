from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.database import get_db
from conduit.dependencies import PaginationParams, get_current_user, get_optional_user
from conduit.models import User
from conduit.schemas import (
    ArticleCreateRequest,
    ArticleEnvelope,
    ArticleListResponse,
    ArticleUpdateRequest,
    CommentCreateRequest,
    CommentEnvelope,
    CommentListResponse,
)
from conduit.services import article_service, comment_service

router = APIRouter(prefix="/api/articles", tags=["articles"])

@router.get("", response_model=ArticleListResponse)
async def list_articles(
    tag: str | None = Query(None),
    author: str | None = Query(None),
    favorited: str | None = Query(None),
    pagination: PaginationParams = Depends(),
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.list_articles(
        db, tag, author, favorited, pagination.limit, pagination.offset, viewer
    )

@router.get("/feed", response_model=ArticleListResponse)
async def feed(
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.get_feed(db, user, pagination.limit, pagination.offset)

@router.post("", response_model=ArticleEnvelope, status_code=201)
async def create_article(
    payload: ArticleCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.create_article(db, user, payload.article)}

@router.get("/{slug}", response_model=ArticleEnvelope)
async def get_article(
    slug: str,
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.get_article(db, slug, viewer)}

@router.put("/{slug}", response_model=ArticleEnvelope)
async def update_article(
    slug: str,
    payload: ArticleUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.update_article(db, slug, user, payload.article)}

@router.delete("/{slug}")
async def delete_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await article_service.delete_article(db, slug, user)
    return {}

@router.post("/{slug}/favorite", response_model=ArticleEnvelope)
async def favorite_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.favorite_article(db, slug, user)}

@router.delete("/{slug}/favorite", response_model=ArticleEnvelope)
async def unfavorite_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.unfavorite_article(db, slug, user)}

@router.get("/{slug}/comments", response_model=CommentListResponse)
async def list_comments(
    slug: str,
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return {"comments": await comment_service.list_comments(db, slug, viewer)}

@router.post("/{slug}/comments", response_model=CommentEnvelope, status_code=201)
async def add_comment(
    slug: str,
    payload: CommentCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"comment": await comment_service.add_comment(db, slug, user, payload.comment.body)}

@router.delete("/{slug}/comments/{comment_id}")
async def delete_comment(
    slug: str,
    comment_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, slug, comment_id, user)
    return {}
