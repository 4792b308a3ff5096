from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.database import get_db
from conduit.schemas import TagListResponse
from conduit.services import tag_service

router = APIRouter(prefix="/api/tags", tags=["tags"])

@router.get("", response_model=TagListResponse)
async def list_tags(db: AsyncSession = Depends(get_db)):
    return {"tags": await tag_service.list_tags(db)}
