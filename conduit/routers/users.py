from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.database import get_db
from conduit.dependencies import get_current_user, get_optional_user
from conduit.exceptions import ConflictError
from conduit.models import User
from conduit.schemas import ProfileEnvelope, UserCreateRequest, UserEnvelope
from conduit.services import user_service

router = APIRouter(prefix="/api", tags=["users"])

@router.post("/users", response_model=UserEnvelope, status_code=201)
async def create_user(payload: UserCreateRequest, db: AsyncSession = Depends(get_db)):
    try:
        return {"user": await user_service.create_user(db, payload.user)}
    except IntegrityError:
        raise ConflictError("user", "A user with this username or email already exists")

@router.get("/profiles/{username}", response_model=ProfileEnvelope)
async def get_profile(
    username: str,
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await user_service.get_profile(db, username, viewer)}

@router.post("/profiles/{username}/follow", response_model=ProfileEnvelope)
async def follow(
    username: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await user_service.follow_user(db, user, username)}

@router.delete("/profiles/{username}/follow", response_model=ProfileEnvelope)
async def unfollow(
    username: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await user_service.unfollow_user(db, user, username)}
