from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import HTMLResponse, PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import html

from infinitiflow.core.database import get_db
from infinitiflow.core.exceptions import PaymentRequiredError, ValidationError
from infinitiflow.core.logging_config import logger
from infinitiflow.models.content import Content, ContentCategory, ContentStatus, ContentType
from infinitiflow.models.plans import PlanType, get_plan_features
from infinitiflow.models.user import User
from infinitiflow.modules.auth.dependencies import (
    check_ownership,
    check_subscription,
    get_current_user,
    user_rate_limit,
)
from infinitiflow.modules.auth.usage_limits import record_content_usage, require_user_limit
from infinitiflow.modules.content.crud import OwnedResourceCRUD
from infinitiflow.schemas.content import (
    ContentCreate,
    ContentGenerateRequest,
    ContentResponse,
    ContentUpdate,
    Pagination,
)


router = APIRouter(dependencies=[Depends(user_rate_limit())])

content_crud = OwnedResourceCRUD(Content)

owned_content = check_ownership(content_crud.get, id_param="content_id")

EXPORT_MEDIA = {"txt", "html"}


def _content_payload(item: Content, message: str = None) -> dict:
    payload = {"status": "success", "data": {"content": ContentResponse.from_content(item).to_json()}}
    if message:
        payload["message"] = message
    return payload


def _placeholder_text(prompt: str, settings: dict) -> str:
    return (
        f"Generated content for: {prompt}\n\n"
        "This is a placeholder for AI-generated content. A language model would produce it "
        "with the following settings:\n"
        f"- Model: {settings['model']}\n"
        f"- Temperature: {settings['temperature']}\n"
        f"- Max Tokens: {settings['maxTokens']}\n"
        f"- Tone: {settings['tone']}\n"
        f"- Language: {settings['language']}"
    )


# ==========================================
# Collection
# ==========================================

@router.get("")
async def list_content(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    type: Optional[ContentType] = None,
    status_filter: Optional[ContentStatus] = Query(None, alias="status"),
    category: Optional[ContentCategory] = None,
    sort: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """The caller's own content, newest first"""
    result = await content_crud.list_for_owner(
        db,
        current_user.id,
        page=page,
        limit=limit,
        filters={"type": type, "status": status_filter, "category": category},
        sort=sort,
    )
    items = [ContentResponse.from_content(item).to_json() for item in result["items"]]
    pagination = Pagination(
        page=result["page"], limit=result["limit"], total=result["total"], pages=result["pages"]
    )
    return {
        "status": "success",
        "results": len(items),
        "data": {"content": items, "pagination": pagination.to_json()},
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_content(
    body: ContentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    require_user_limit(current_user, "contentGenerated")

    item = await content_crud.create(db, current_user.id, body.model_dump())
    await record_content_usage(db, current_user, item.word_count)
    await db.commit()

    logger.info(f"[Content] {current_user.id} created {item.id} ({item.word_count} words)")
    return _content_payload(item, "Content created successfully")


@router.post(
    "/generate",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_subscription(PlanType.FREE))],
)
async def generate_content(
    body: ContentGenerateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Stub generator: stores placeholder text and counts it against the quota"""
    require_user_limit(current_user, "contentGenerated")

    generation_settings = body.generation_settings.model_dump(by_alias=True)
    item = await content_crud.create(db, current_user.id, {
        "title": body.title or f"Generated {body.type.value}",
        "content": _placeholder_text(body.prompt, generation_settings),
        "type": body.type,
        "prompt": body.prompt,
        "generation_settings": generation_settings,
    })
    await record_content_usage(db, current_user, item.word_count)
    await db.commit()

    logger.info(f"[Content] {current_user.id} generated {item.id}")
    return _content_payload(item, "Content generated successfully")


@router.get("/export/{content_id}", dependencies=[Depends(check_subscription(PlanType.BASIC))])
async def export_content(
    requested_format: str = Query("txt", alias="format"),
    item: Content = Depends(owned_content),
    current_user: User = Depends(get_current_user)
):
    """Download one item in a format the caller's plan allows"""
    export_format = requested_format.lower()
    allowed = get_plan_features(current_user.plan)["exportOptions"]
    if export_format not in allowed:
        raise PaymentRequiredError(
            f"Export format '{export_format}' is not available on your plan",
            details={"allowed": allowed},
        )
    if export_format not in EXPORT_MEDIA:
        raise ValidationError(f"Export format '{export_format}' is not supported yet", field="format")

    filename = f"{item.id}.{export_format}"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}

    if export_format == "html":
        body = (
            f"<!DOCTYPE html><html><head><meta charset=\"utf-8\"><title>{html.escape(item.title)}</title></head>"
            f"<body><h1>{html.escape(item.title)}</h1>"
            + "".join(f"<p>{html.escape(p)}</p>" for p in item.content.split("\n\n") if p.strip())
            + "</body></html>"
        )
        return HTMLResponse(body, headers=headers)

    return PlainTextResponse(f"{item.title}\n\n{item.content}\n", headers=headers)


# ==========================================
# Single item
# ==========================================

@router.get("/{content_id}")
async def get_content(item: Content = Depends(owned_content)):
    return _content_payload(item)


@router.patch("/{content_id}")
async def update_content(
    body: ContentUpdate,
    item: Content = Depends(owned_content),
    db: AsyncSession = Depends(get_db)
):
    updates = body.model_dump(exclude_unset=True, exclude_none=True)
    item = await content_crud.update(db, item, updates)
    await db.commit()

    return _content_payload(item, "Content updated successfully")


@router.patch("/{content_id}/favorite")
async def toggle_favorite(
    item: Content = Depends(owned_content),
    db: AsyncSession = Depends(get_db)
):
    item = await content_crud.update(db, item, {"is_favorite": not item.is_favorite})
    await db.commit()

    verb = "added to" if item.is_favorite else "removed from"
    return _content_payload(item, f"Content {verb} favorites")


@router.delete("/{content_id}")
async def delete_content(
    item: Content = Depends(owned_content),
    db: AsyncSession = Depends(get_db)
):
    await content_crud.delete(db, item)
    await db.commit()

    return {"status": "success", "message": "Content deleted successfully"}
