from pydantic import BaseModel, Field


# --- User ---

class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    bio: str | None = None
    image: str | None = Field(None, max_length=500)


class UserCreateRequest(BaseModel):
    user: UserCreate


# --- Comment ---

class CommentCreate(BaseModel):
    body: str


class CommentCreateRequest(BaseModel):
    comment: CommentCreate


# --- Article ---

class ArticleCreate(BaseModel):
    title: str
    description: str
    body: str
    tagList: list[str] = []


class ArticleCreateRequest(BaseModel):
    article: ArticleCreate


class ArticleUpdate(BaseModel):
    """
    Partial update.  A field counts as present only if the client sent
    it (``model_fields_set``); absent fields are left untouched.
    """

    title: str | None = None
    description: str | None = None
    body: str | None = None
    tagList: list[str] | None = None

    def present_fields(self) -> dict:
        return {name: getattr(self, name) for name in self.model_fields_set}


class ArticleUpdateRequest(BaseModel):
    article: ArticleUpdate


# --- Responses ---

class ProfileResponse(BaseModel):
    username: str
    bio: str | None = None
    image: str | None = None
    following: bool = False


class ProfileEnvelope(BaseModel):
    profile: ProfileResponse


class UserResponse(BaseModel):
    username: str
    email: str
    bio: str | None = None
    image: str | None = None
    token: str


class UserEnvelope(BaseModel):
    user: UserResponse


class ArticleResponse(BaseModel):
    slug: str
    title: str
    description: str
    body: str
    tagList: list[str]
    createdAt: str | None
    updatedAt: str | None
    favorited: bool
    favoritesCount: int
    author: ProfileResponse


class ArticleEnvelope(BaseModel):
    article: ArticleResponse


class ArticleListResponse(BaseModel):
    articles: list[ArticleResponse]
    articlesCount: int


class CommentResponse(BaseModel):
    id: int
    createdAt: str | None
    updatedAt: str | None
    body: str
    author: ProfileResponse


class CommentEnvelope(BaseModel):
    comment: CommentResponse


class CommentListResponse(BaseModel):
    comments: list[CommentResponse]


class TagListResponse(BaseModel):
    tags: list[str]
