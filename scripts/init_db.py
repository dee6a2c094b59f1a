#!/usr/bin/env python3
"""
Database initialization script
Creates all tables and optionally seeds demo monkeys, props and wagers
"""

import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Load .env file
from dotenv import load_dotenv
load_dotenv()

from backend.models import Base, engine, SessionLocal
from backend.services.exceptions import MonkeyBetsError
from backend.services.identity import find_by_phone, purge_expired_sessions, sign_up
from backend.services.props import create_prop, place_wager
from datetime import datetime, timedelta
import logging
from sqlalchemy import text, inspect

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_PHONES = ["+15550100001", "+15550100002", "+15550100003"]

DEMO_PROPS = [
    # (creator index, name, expires in)
    (0, "Will the banana price increase by 20% this month?", timedelta(days=30)),
    (0, "Will it rain on Saturday?", timedelta(days=5)),
    (1, "Will the office plant survive the week?", timedelta(days=7)),
]

DEMO_WAGERS = [
    # (prop index, bettor index, prediction, bananas)
    (0, 1, True, 75),
    (0, 2, False, 25),
    (1, 2, True, 10),
    (2, 0, False, 40),
]


def init_database(drop_existing: bool = False):
    """
    Initialize database tables

    Args:
        drop_existing: If True, drops all tables first (DANGER: data loss!)
    """
    logger.info("🔧 Initializing MonkeyBets database...")

    if drop_existing:
        logger.warning("⚠️  Dropping all existing tables!")
        response = input("Are you sure? This will delete all data. Type 'yes' to confirm: ")
        if response.lower() != 'yes':
            logger.info("Aborted.")
            return False

        Base.metadata.drop_all(bind=engine)
        logger.info("✅ Existing tables dropped")

    Base.metadata.create_all(bind=engine)
    logger.info("✅ Database tables created successfully")

    inspector = inspect(engine)
    logger.info(f"📋 Tables: {', '.join(inspector.get_table_names())}")

    return True


def seed_demo_data():
    """Three demo monkeys with a few open props and wagers between them"""
    logger.info("🌱 Seeding demo data...")

    db = SessionLocal()

    try:
        monkeys = [find_by_phone(db, phone) or sign_up(db, phone) for phone in DEMO_PHONES]

        now = datetime.utcnow()
        props = [
            create_prop(db, monkeys[creator].id, name, now + expires_in)
            for creator, name, expires_in in DEMO_PROPS
        ]

        for prop_idx, bettor_idx, prediction, bananas in DEMO_WAGERS:
            place_wager(db, props[prop_idx].id, monkeys[bettor_idx].id, prediction, bananas)

        logger.info(f"✅ Seeded {len(monkeys)} monkeys, {len(props)} props, {len(DEMO_WAGERS)} wagers")

    except MonkeyBetsError as e:
        logger.error(f"❌ Error seeding data: {e.message}")
        db.rollback()
        raise

    finally:
        db.close()


def purge_sessions():
    """Drop idle sessions now instead of waiting for the scheduler"""
    db = SessionLocal()
    try:
        purged = purge_expired_sessions(db)
        logger.info(f"🧹 Purged {purged} expired sessions")
    finally:
        db.close()


def check_connection():
    """Test database connection"""
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
        logger.info("✅ Database connection successful")
        return True
    except Exception as e:
        logger.error(f"❌ Database connection failed: {e}")
        return False


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Initialize MonkeyBets database")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables (DANGER!)")
    parser.add_argument("--seed", action="store_true", help="Seed demo monkeys, props and wagers")
    parser.add_argument("--check", action="store_true", help="Only check connection")
    parser.add_argument("--purge-sessions", action="store_true", help="Delete expired sign-in sessions")

    args = parser.parse_args()

    if args.check:
        check_connection()
    elif not check_connection():
        logger.error("Cannot initialize database - connection failed")
        sys.exit(1)
    elif args.purge_sessions:
        purge_sessions()
    elif init_database(drop_existing=args.drop):
        if args.seed:
            seed_demo_data()
        logger.info("🎉 Database initialization complete!")
