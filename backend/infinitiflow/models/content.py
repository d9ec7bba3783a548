from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, Integer, Text, JSON, ForeignKey, Index
from sqlalchemy.orm import validates
from datetime import datetime
import math
import enum

from infinitiflow.core.database import Base, generate_uuid


WORDS_PER_MINUTE = 200


class ContentType(str, enum.Enum):
    BLOG_POST = "blog-post"
    SOCIAL_MEDIA_POST = "social-media-post"
    EMAIL = "email"
    AD_COPY = "ad-copy"
    PRODUCT_DESCRIPTION = "product-description"
    PRESS_RELEASE = "press-release"
    NEWSLETTER = "newsletter"
    LANDING_PAGE = "landing-page"
    SEO_CONTENT = "seo-content"
    VIDEO_SCRIPT = "video-script"
    PODCAST_SCRIPT = "podcast-script"
    OTHER = "other"


class ContentCategory(str, enum.Enum):
    MARKETING = "marketing"
    SALES = "sales"
    CONTENT = "content"
    SOCIAL_MEDIA = "social-media"
    EMAIL_MARKETING = "email-marketing"
    SEO = "seo"
    ADVERTISING = "advertising"
    EDUCATION = "education"
    ENTERTAINMENT = "entertainment"
    OTHER = "other"


class ContentStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


def count_words(text: str) -> int:
    return len([word for word in (text or "").split() if word])


class Content(Base):
    """Generated or user-written marketing content owned by a single user"""
    __tablename__ = "contents"
    __table_args__ = (
        Index("ix_contents_user_created", "user_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)

    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    type = Column(SQLEnum(ContentType), nullable=False)
    category = Column(SQLEnum(ContentCategory), default=ContentCategory.CONTENT, nullable=False)
    status = Column(SQLEnum(ContentStatus), default=ContentStatus.DRAFT, nullable=False)

    prompt = Column(Text, nullable=True)
    generation_settings = Column(JSON, nullable=True)
    tags = Column(JSON, default=list)

    is_public = Column(Boolean, default=False, nullable=False)
    is_favorite = Column(Boolean, default=False, nullable=False)

    word_count = Column(Integer, default=0, nullable=False)
    reading_time = Column(Integer, default=0, nullable=False)  # minutes
    published_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Content {self.title}>"

    @validates("content")
    def update_word_count(self, key, value):
        self.word_count = count_words(value)
        self.reading_time = math.ceil(self.word_count / WORDS_PER_MINUTE)
        return value

    @validates("status")
    def stamp_published(self, key, value):
        if value == ContentStatus.PUBLISHED and not self.published_at:
            self.published_at = datetime.utcnow()
        return value

    @validates("tags")
    def normalize_tags(self, key, value):
        return [tag.strip().lower() for tag in (value or []) if tag and tag.strip()]
