#!/usr/bin/env python3
"""Operator commands for the Elite Tours API: schema, seed catalog, admin flag."""

import argparse
import asyncio
import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from elite_tours.core.database import async_session_factory, close_db, init_db
from elite_tours.core.observability import setup_structured_logging
from elite_tours.models import Tour
from elite_tours.schemas import validate
from elite_tours.services.idempotency_service import IdempotencyService
from elite_tours.services.tour_service import TourService
from elite_tours.services.user_service import UserService

logger = logging.getLogger("elite_tours.manage")

DB_DIR = Path(__file__).resolve().parent.parent / "server" / "db"

IMAGE_PARAMS = "?ixlib=rb-4.0.3&auto=format&fit=crop&w=1000&h=600"

OAHU_TOURS = [
    # Day tours
    {
        "name": "Diamond Head Sunrise Adventure",
        "description": (
            "Experience the iconic Diamond Head crater at sunrise. This moderate hike offers "
            "panoramic views of Waikiki, Honolulu and the Pacific Ocean."
        ),
        "type": "day",
        "price": "89.00",
        "duration": 4,
        "maxGroupSize": 8,
        "imageUrl": f"https://images.unsplash.com/photo-1506905925346-21bda4d32df4{IMAGE_PARAMS}",
    },
    {
        "name": "Hanauma Bay Snorkeling Experience",
        "description": (
            "Snorkel among tropical fish and coral reefs in the Hanauma Bay Nature Preserve. "
            "Equipment and instruction included."
        ),
        "type": "day",
        "price": "129.00",
        "duration": 6,
        "maxGroupSize": 10,
        "imageUrl": f"https://images.unsplash.com/photo-1544551763-46a013bb70d5{IMAGE_PARAMS}",
    },
    {
        "name": "Circle Island Grand Tour",
        "description": (
            "All of Oahu in one day: North Shore surf beaches, the Windward Coast and Pearl Harbor. "
            "Includes lunch and photo stops."
        ),
        "type": "day",
        "price": "179.00",
        "duration": 8,
        "maxGroupSize": 12,
        "imageUrl": f"https://images.unsplash.com/photo-1507525428034-b723cf961d3e{IMAGE_PARAMS}",
    },
    {
        "name": "Pearl Harbor & Historic Honolulu",
        "description": (
            "Visit the USS Arizona Memorial and Pearl Harbor Museum, then explore Iolani Palace "
            "and the King Kamehameha Statue downtown."
        ),
        "type": "day",
        "price": "149.00",
        "duration": 7,
        "maxGroupSize": 15,
        "imageUrl": f"https://images.unsplash.com/photo-1551966775-a4ddc8df052b{IMAGE_PARAMS}",
    },
    {
        "name": "North Shore Adventure",
        "description": (
            "Pipeline, Sunset Beach and Waimea Bay, with stops at Haleiwa town and the shrimp trucks."
        ),
        "type": "day",
        "price": "139.00",
        "duration": 8,
        "maxGroupSize": 8,
        "imageUrl": f"https://images.unsplash.com/photo-1582882112003-ca5900d8471e{IMAGE_PARAMS}",
    },
    {
        "name": "Koko Head Crater Hike",
        "description": "The railway trail up Koko Head Crater, with 360-degree views of Southeast Oahu.",
        "type": "day",
        "price": "99.00",
        "duration": 5,
        "maxGroupSize": 6,
        "imageUrl": f"https://images.unsplash.com/photo-1469474968028-56623f02e421e{IMAGE_PARAMS}",
    },
    {
        "name": "Polynesian Cultural Center & Laie",
        "description": "Traditional villages, performances and Pacific Island heritage at the Polynesian Cultural Center.",
        "type": "day",
        "price": "199.00",
        "duration": 8,
        "maxGroupSize": 20,
        "imageUrl": f"https://images.unsplash.com/photo-1580500550469-26c0d0cd6d7e{IMAGE_PARAMS}",
    },
    {
        "name": "Manoa Falls & Rainforest Hike",
        "description": "An easy-moderate rainforest trek to the 150-foot Manoa Falls.",
        "type": "day",
        "price": "79.00",
        "duration": 4,
        "maxGroupSize": 10,
        "imageUrl": f"https://images.unsplash.com/photo-1441974231531-c6227db76b6e{IMAGE_PARAMS}",
    },
    # Night tours
    {
        "name": "Sunset Dinner Cruise",
        "description": "Catamaran dinner cruise off Waikiki with live Hawaiian music at sunset.",
        "type": "night",
        "price": "189.00",
        "duration": 3,
        "maxGroupSize": 40,
        "imageUrl": f"https://images.unsplash.com/photo-1520454974749-611b7248ffdb{IMAGE_PARAMS}",
    },
    {
        "name": "Waikiki Night Photography Tour",
        "description": "Night photography techniques among Waikiki's illuminated landmarks.",
        "type": "night",
        "price": "119.00",
        "duration": 3,
        "maxGroupSize": 6,
        "imageUrl": f"https://images.unsplash.com/photo-1506905925346-21bda4d32df4{IMAGE_PARAMS}",
    },
    {
        "name": "Stargazing at Makapuu Lighthouse",
        "description": "Telescope stargazing at Makapuu Lighthouse and an introduction to Hawaiian wayfinding.",
        "type": "night",
        "price": "99.00",
        "duration": 3,
        "maxGroupSize": 8,
        "imageUrl": f"https://images.unsplash.com/photo-1419242902214-272b3f66ee7a{IMAGE_PARAMS}",
    },
    {
        "name": "Night Luau Experience",
        "description": "Beachfront luau with a traditional feast, fire dancing and live music.",
        "type": "night",
        "price": "159.00",
        "duration": 4,
        "maxGroupSize": 50,
        "imageUrl": f"https://images.unsplash.com/photo-1544551763-46a013bb70d5{IMAGE_PARAMS}",
    },
    {
        "name": "Chinatown Food & Night Market Tour",
        "description": "Asian street food, night markets and local hangouts in Honolulu's Chinatown.",
        "type": "night",
        "price": "89.00",
        "duration": 3,
        "maxGroupSize": 12,
        "imageUrl": f"https://images.unsplash.com/photo-1514362545857-3bc16c4c7d1b{IMAGE_PARAMS}",
    },
]


def migrate() -> None:
    """Apply Alembic migrations up to head."""
    alembic_cfg = Config(str(DB_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(DB_DIR / "alembic"))

    logger.info("Running database migrations...")
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_tables() -> None:
    """Create tables straight from the models (development databases only)."""
    await init_db()
    logger.info("Database tables created")


async def seed_tours(force: bool = False) -> int:
    """Insert the Oahu catalog; skipped when tours already exist unless ``force``."""
    requests = [validate("tour", tour) for tour in OAHU_TOURS]

    async with async_session_factory() as db:
        existing = await db.scalar(select(func.count()).select_from(Tour))
        if existing and not force:
            logger.info("Tours already present, skipping seed", extra={"existing": existing})
            return 0

        service = TourService(db)
        for request in requests:
            await service.create_tour(request)

    logger.info("Tours seeded successfully", extra={"count": len(requests)})
    return len(requests)


async def set_admin(user_id: str, is_admin: bool) -> None:
    async with async_session_factory() as db:
        await UserService(db).set_admin(user_id, is_admin)


async def purge_idempotency() -> int:
    async with async_session_factory() as db:
        return await IdempotencyService(db).cleanup_expired_records()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    subcommands = parser.add_subparsers(dest="command", required=True)

    subcommands.add_parser("migrate", help="apply Alembic migrations")
    subcommands.add_parser("init-db", help="create tables from the models (development only)")

    seed = subcommands.add_parser("seed-tours", help="insert the Oahu tour catalog")
    seed.add_argument("--force", action="store_true", help="seed even if tours exist")

    grant = subcommands.add_parser("grant-admin", help="give a signed-in user admin rights")
    grant.add_argument("user_id")

    revoke = subcommands.add_parser("revoke-admin", help="remove a user's admin rights")
    revoke.add_argument("user_id")

    subcommands.add_parser("purge-idempotency", help="delete expired checkout replay records")

    return parser


async def run(args: argparse.Namespace) -> None:
    try:
        if args.command == "init-db":
            await create_tables()
        elif args.command == "seed-tours":
            await seed_tours(force=args.force)
        elif args.command == "grant-admin":
            await set_admin(args.user_id, True)
        elif args.command == "revoke-admin":
            await set_admin(args.user_id, False)
        elif args.command == "purge-idempotency":
            await purge_idempotency()
    finally:
        await close_db()


def main() -> None:
    setup_structured_logging()
    args = build_parser().parse_args()

    if args.command == "migrate":
        migrate()
        return

    asyncio.run(run(args))


if __name__ == "__main__":
    main()
