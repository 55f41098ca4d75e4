"""
Account administration for admins: list, create, update and deactivate.

Admins manage staff and passenger accounts. Admin accounts themselves are
only created by the bootstrap command (``shuttle-create-admin``) and cannot
be created, changed or deactivated through the API.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shuttle.core.exceptions import ConflictError, PermissionDeniedError, ValidationError
from shuttle.core.logging import get_logger
from shuttle.core.security import hash_password
from shuttle.models.user import User, UserRole
from shuttle.schemas.user import AdminUserCreate, UserCreate, UserUpdate
from shuttle.services.auth_service import get_user, register_user

logger = get_logger(__name__)


def _refuse_admin_role(role: Optional[UserRole]) -> None:
    if role == UserRole.ADMIN:
        raise ValidationError(
            "Only staff and user accounts can be managed here",
            {"role": role.value},
        )


def _refuse_admin_account(user: User) -> None:
    if user.role == UserRole.ADMIN:
        raise PermissionDeniedError("Admin accounts cannot be modified", {"user_id": user.id})


async def list_users(
    db: AsyncSession,
    role: Optional[UserRole] = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[User], int]:
    query = select(User)
    if role is not None:
        query = query.where(User.role == role)
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    result = await db.execute(query.order_by(User.id).offset((page - 1) * limit).limit(limit))
    return list(result.scalars().all()), total or 0


async def create_user(db: AsyncSession, data: AdminUserCreate) -> User:
    _refuse_admin_role(data.role)
    return await register_user(db, data, role=data.role)


async def update_user(db: AsyncSession, user_id: int, data: UserUpdate) -> User:
    """Partial update; only fields that were sent are applied."""
    user = await get_user(db, user_id)
    _refuse_admin_account(user)

    changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    _refuse_admin_role(changes.get("role"))

    if "email" in changes:
        email = changes["email"].lower()
        taken = await db.scalar(select(User.id).where(User.email == email, User.id != user.id))
        if taken is not None:
            raise ConflictError("Email already registered", {"email": email})
        changes["email"] = email

    if "password" in changes:
        user.hashed_password = hash_password(changes.pop("password"))

    for field, value in changes.items():
        setattr(user, field, value)
    await db.flush()
    await db.refresh(user)

    logger.info("user_updated", user_id=user.id, fields=sorted(data.model_fields_set))
    return user


async def deactivate_user(db: AsyncSession, user_id: int) -> None:
    """
    Soft delete. Bookings keep pointing at the account; its tokens and
    logins stop working and its pending holds run out through the reaper.
    """
    user = await get_user(db, user_id)
    _refuse_admin_account(user)

    user.is_active = False
    await db.flush()
    logger.info("user_deactivated", user_id=user.id, role=user.role.value)


async def ensure_admin(db: AsyncSession, email: str, password: str, full_name: str) -> tuple[User, bool]:
    """
    Idempotent bootstrap of an admin account. Returns the account and whether
    it was created by this call. An existing non-admin account with the same
    email is never promoted.
    """
    existing = (await db.execute(select(User).where(User.email == email.lower()))).scalar_one_or_none()
    if existing is not None:
        if existing.role != UserRole.ADMIN:
            raise ConflictError("Email belongs to a non-admin account", {"email": existing.email})
        return existing, False

    user = await register_user(
        db, UserCreate(email=email, full_name=full_name, password=password), role=UserRole.ADMIN
    )
    return user, True
