#!/usr/bin/env python3
"""
Nuber Eats Demo Seed Data
=========================

Registers a handful of demo accounts (one per role) and a few
restaurants so the API can be explored right away.

Demo accounts all use the password ``123456``.

Usage:
    python scripts/seed_demo_data.py              # seed (skips accounts that exist)
    python scripts/seed_demo_data.py --verified   # also mark the accounts verified

Requirements:
    Run from the backend/ directory (or set PYTHONPATH), with JWT_SECRET
    and DATABASE_URL set as for the server.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# ── Ensure we can import project modules ────────────────────────────
SCRIPT_DIR = Path(__file__).resolve().parent
BACKEND_DIR = SCRIPT_DIR.parent
sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import select  # noqa: E402

from auth.errors import ErrorKind  # noqa: E402
from auth.jwt_service import TokenService  # noqa: E402
from auth.passwords import CredentialHasher  # noqa: E402
from config import settings  # noqa: E402
from database import AsyncSessionLocal, init_db, close_db  # noqa: E402
from models import Restaurant, UserRole, Verification  # noqa: E402
from services import restaurants as restaurant_service  # noqa: E402
from services.user_directory import UserDirectory  # noqa: E402
from utils.logging_utils import setup_logging, get_logger  # noqa: E402

logger = get_logger("seed")

DEMO_PASSWORD = "123456"

DEMO_USERS = [
    ("test1@test.com", UserRole.OWNER),
    ("test2@test.com", UserRole.OWNER),
    ("client@test.com", UserRole.CLIENT),
    ("rider@test.com", UserRole.DELIVERY),
]

DEMO_RESTAURANTS = [
    {"name": "Green Bowl", "vegan_only": True, "is_good": True},
    {"name": "Meat Shack", "vegan_only": False, "is_good": False},
    {"name": "Noodle Bar", "vegan_only": False, "is_good": True},
]


async def seed(verified: bool) -> None:
    await init_db()
    tokens = TokenService(settings.JWT_SECRET, settings.JWT_ALGORITHM)
    hasher = CredentialHasher(rounds=settings.BCRYPT_ROUNDS)

    async with AsyncSessionLocal() as session:
        directory = UserDirectory(session, tokens, hasher)

        for email, role in DEMO_USERS:
            result = await directory.register(email, DEMO_PASSWORD, role)
            if result.error is ErrorKind.DUPLICATE_EMAIL:
                logger.info(f"  = {email} already exists")
                continue
            if not result.ok:
                logger.error(f"  ! {email}: {result.message}")
                continue
            logger.info(f"  + {email} ({role.value})")

            if verified:
                user = (await directory.find_one({"email": email})).value
                code = await session.scalar(
                    select(Verification.code).where(Verification.user_id == user.id)
                )
                await directory.verify_email(code)

        existing = set(await session.scalars(select(Restaurant.name)))
        for fields in DEMO_RESTAURANTS:
            if fields["name"] in existing:
                continue
            await restaurant_service.create_restaurant(session, fields)

    await close_db()


def main():
    parser = argparse.ArgumentParser(
        description="Seed Nuber Eats with demo accounts and restaurants",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--verified",
        action="store_true",
        help="Mark demo accounts as email-verified",
    )
    args = parser.parse_args()

    setup_logging(level="INFO")
    logger.info(f"Seeding {settings.DATABASE_URL}")
    asyncio.run(seed(verified=args.verified))
    logger.info("Done")


if __name__ == "__main__":
    main()
