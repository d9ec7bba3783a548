from pydantic import Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from infinitiflow.models.content import Content, ContentType, ContentCategory, ContentStatus
from infinitiflow.schemas.common import CamelModel, RequestModel


class ContentCreate(RequestModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    type: ContentType
    category: ContentCategory = ContentCategory.CONTENT
    status: ContentStatus = ContentStatus.DRAFT
    prompt: Optional[str] = None
    tags: List[str] = []
    is_public: bool = False
    is_favorite: bool = False


class ContentUpdate(RequestModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    type: Optional[ContentType] = None
    category: Optional[ContentCategory] = None
    status: Optional[ContentStatus] = None
    tags: Optional[List[str]] = None
    is_public: Optional[bool] = None
    is_favorite: Optional[bool] = None


class GenerationSettings(RequestModel):
    model: str = "gpt-4"
    temperature: float = Field(0.7, ge=0, le=2)
    max_tokens: int = Field(1000, ge=1, le=4000)
    tone: str = Field(
        "professional",
        pattern=r"^(professional|casual|friendly|formal|humorous|persuasive|informative)$",
    )
    language: str = "en"
    target_audience: Optional[str] = None
    keywords: List[str] = []


class ContentGenerateRequest(RequestModel):
    prompt: str = Field(..., min_length=1)
    type: ContentType
    title: Optional[str] = Field(None, max_length=200)
    generation_settings: GenerationSettings = Field(default_factory=GenerationSettings)


class ContentResponse(CamelModel):
    id: str
    user_id: str
    title: str
    content: str
    type: ContentType
    category: ContentCategory
    status: ContentStatus
    prompt: Optional[str] = None
    generation_settings: Optional[Dict[str, Any]] = None
    tags: List[str] = []
    is_public: bool
    is_favorite: bool
    word_count: int
    reading_time: int
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_content(cls, item: Content) -> "ContentResponse":
        return cls(
            id=item.id,
            user_id=item.user_id,
            title=item.title,
            content=item.content,
            type=item.type,
            category=item.category or ContentCategory.CONTENT,
            status=item.status or ContentStatus.DRAFT,
            prompt=item.prompt,
            generation_settings=item.generation_settings,
            tags=item.tags or [],
            is_public=bool(item.is_public),
            is_favorite=bool(item.is_favorite),
            word_count=item.word_count or 0,
            reading_time=item.reading_time or 0,
            published_at=item.published_at,
            created_at=item.created_at,
            updated_at=item.updated_at,
        )


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int
