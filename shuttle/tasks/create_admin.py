"""
Bootstrap the first admin account.

    shuttle-create-admin --email admin@example.com --password '...'

Email, password and name fall back to ADMIN_EMAIL, ADMIN_PASSWORD and
ADMIN_FULL_NAME. Safe to run on every deploy: an existing admin with the
same email is left untouched.
"""

import argparse
import asyncio
from typing import Optional

from shuttle.core.config import get_settings
from shuttle.core.logging import get_logger, setup_logging
from shuttle.db.session import session_scope
from shuttle.services.user_service import ensure_admin

logger = get_logger(__name__)
settings = get_settings()


async def create_admin(email: str, password: str, full_name: str) -> bool:
    async with session_scope() as db:
        user, created = await ensure_admin(db, email, password, full_name)
        await db.commit()

    if created:
        logger.info("admin_created", user_id=user.id, email=user.email)
    else:
        logger.info("admin_exists", user_id=user.id, email=user.email)
    return created


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Create the bootstrap admin account.")
    parser.add_argument("--email", default=settings.ADMIN_EMAIL)
    parser.add_argument("--password", default=settings.ADMIN_PASSWORD)
    parser.add_argument("--full-name", default=settings.ADMIN_FULL_NAME)
    args = parser.parse_args(argv)

    if not args.email or not args.password:
        parser.error("an email and a password are required (flags or ADMIN_EMAIL / ADMIN_PASSWORD)")

    setup_logging(component="bootstrap")
    asyncio.run(create_admin(args.email, args.password, args.full_name))


if __name__ == "__main__":
    main()
