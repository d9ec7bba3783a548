from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from infinitiflow.core.database import get_db
from infinitiflow.core.exceptions import ConflictError
from infinitiflow.core.logging_config import logger
from infinitiflow.models.user import User
from infinitiflow.modules.auth.dependencies import get_current_user, user_rate_limit
from infinitiflow.modules.auth.usage_limits import get_usage_limits
from infinitiflow.schemas.user import (
    PreferencesUpdate,
    ProfileUpdate,
    UsageLimits,
    UserResponse,
)
from infinitiflow.schemas.common import MessageResponse
from infinitiflow.services.auth_service import auth_service


# All routes are protected and share one per-user budget
router = APIRouter(dependencies=[Depends(user_rate_limit())])


def _user_payload(user: User, message: str = None) -> dict:
    payload = {"status": "success", "data": {"user": UserResponse.from_user(user).to_json()}}
    if message:
        payload["message"] = message
    return payload


@router.get("/profile")
async def get_profile(current_user: User = Depends(get_current_user)):
    return _user_payload(current_user)


@router.patch("/profile")
async def update_profile(
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update name, e-mail and company; a new e-mail must be verified again"""
    updates = body.model_dump(exclude_unset=True)

    new_email = updates.pop("email", None)
    if new_email and new_email != current_user.email:
        existing = await auth_service.get_by_email(db, new_email)
        if existing:
            raise ConflictError("Email already in use", field="email")
        current_user.email = new_email
        current_user.is_email_verified = False
        logger.info(f"[Users] {current_user.id} changed e-mail, verification reset")

    if "first_name" in updates and updates["first_name"]:
        current_user.first_name = updates["first_name"]
    if "last_name" in updates and updates["last_name"]:
        current_user.last_name = updates["last_name"]

    if body.company is not None:
        company = body.company.model_dump(exclude_unset=True)
        for key, value in company.items():
            setattr(current_user, f"company_{key}", value)

    await db.commit()
    await db.refresh(current_user)

    return _user_payload(current_user, "Profile updated successfully")


@router.patch("/preferences")
async def update_preferences(
    body: PreferencesUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    current_user.preferences = body.preferences.model_dump(by_alias=True)
    await db.commit()
    await db.refresh(current_user)

    return _user_payload(current_user, "Preferences updated successfully")


@router.get("/usage")
async def get_usage_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Monthly counters, subscription summary and which limits are hit"""
    limits = get_usage_limits(current_user)
    # get_usage_limits may have rolled the counters over
    await db.commit()

    user_json = UserResponse.from_user(current_user).to_json()
    return {
        "status": "success",
        "data": {
            "usageStats": user_json["usageStats"],
            "subscription": user_json["subscription"],
            "limits": UsageLimits(**limits).to_json(),
        },
    }


@router.delete("/account")
async def delete_account(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Soft delete: the row stays, every token stops working"""
    current_user.active = False
    await db.commit()

    logger.info(f"User account deleted: {current_user.email}")
    return MessageResponse(message="Account deleted successfully").to_json()
