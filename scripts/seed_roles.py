"""
Seed script to populate the role presets and the initial administrator.

Run this script after database initialization to create:
- One role per preset (Manager is the default role for new users)
- An administrator account from ADMIN_LOGIN / ADMIN_PASSWORD

Usage:
    ADMIN_PASSWORD=... python -m scripts.seed_roles
"""
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db, init_db
from app.features.permissions.models import Permission, ROLE_PRESETS
from app.features.roles.models import Role
from app.features.users.auth import get_password_hash
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)

DEFAULT_PRESET = "MANAGER"

ROLE_COLORS = {
    "ADMIN": "#dc2626",
    "MANAGER": "#2563eb",
    "SENIOR_MANAGER": "#7c3aed",
    "CONTENT_MANAGER": "#059669",
}


async def seed_roles(db: AsyncSession) -> None:
    """Create a role for each preset that does not exist yet."""
    log.info("Creating role presets...")

    for key, preset in ROLE_PRESETS.items():
        existing = await db.scalar(select(Role).where(Role.name == preset["name"]))
        if existing:
            log.debug("Role '%s' already exists, skipping", preset["name"])
            continue

        role = Role(
            name=preset["name"],
            description=preset["description"],
            color=ROLE_COLORS.get(key),
            is_default=key == DEFAULT_PRESET,
            permissions=[p.value for p in preset["permissions"]],
        )
        db.add(role)
        log.info("Created role '%s' with %d permissions", role.name, len(role.permissions))

    await db.commit()


async def seed_admin(db: AsyncSession) -> None:
    """Create the administrator account unless the login is already taken."""
    if not config.ADMIN_PASSWORD:
        log.warning("ADMIN_PASSWORD is not set, skipping administrator")
        return

    existing = await db.scalar(select(User).where(User.login == config.ADMIN_LOGIN))
    if existing:
        log.debug("User '%s' already exists, skipping", config.ADMIN_LOGIN)
        return

    db.add(User(
        login=config.ADMIN_LOGIN,
        name="Administrator",
        password_hash=get_password_hash(config.ADMIN_PASSWORD),
        permissions=[p.value for p in ROLE_PRESETS["ADMIN"]["permissions"]],
    ))
    await db.commit()
    log.info("Created administrator '%s'", config.ADMIN_LOGIN)


async def main():
    """Main function to seed roles and the administrator."""
    log.info("Starting seeding...")

    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            await seed_roles(db)
            await seed_admin(db)
            log.info("Seeding completed successfully!")
            log.info("Known permissions: %s", ", ".join(p.value for p in Permission))
        except Exception as e:
            log.error("Error seeding roles: %s", e, exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
