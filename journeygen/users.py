import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import AdminUser
from .settings.config import settings

logger = logging.getLogger(__name__)


async def get_or_create_admin(db: AsyncSession, username: str | None = None) -> AdminUser:
    """The AdminUser row journals are owned by; created on first use."""
    username = username or settings.ADMIN_USERNAME
    existing = (await db.execute(select(AdminUser).where(AdminUser.username == username))).scalars().first()
    if existing:
        return existing

    admin = AdminUser(username=username)
    db.add(admin)
    try:
        await db.commit()
    except IntegrityError:
        # created concurrently by another request
        await db.rollback()
        return (await db.execute(select(AdminUser).where(AdminUser.username == username))).scalars().one()
    logger.info("Admin user created: %s", username)
    return admin
