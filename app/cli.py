"""Operator commands.

    python -m app.cli seed-demo       # landlord from ADMIN_EMAIL/ADMIN_PASSWORD + a demo property
    python -m app.cli sweep-expired   # persist EXPIRED on lapsed invites
"""
import argparse
import logging
import sys

from app.config import get_settings
from app.database import SessionLocal
from app.models.property import Property
from app.models.user import UserRole
from app.services.auth import AuthService
from app.services.expiry_sweep import sweep_expired_invites
from app.services.invite_store import InviteStore

logger = logging.getLogger(__name__)


def seed_landlord(db):
    settings = get_settings()

    if not settings.admin_password:
        print("ERROR: ADMIN_PASSWORD environment variable is required.")
        sys.exit(1)

    existing = AuthService.get_user_by_email(db, settings.admin_email)
    if existing:
        print(f"Landlord already exists: {settings.admin_email}")
        return existing

    user = AuthService.create_user(
        db,
        email=settings.admin_email,
        password=settings.admin_password,
        role=UserRole.LANDLORD,
        full_name="Demo Landlord",
    )
    print(f"Created landlord: {user.email} (role: {user.role})")
    return user


def seed_demo_property(db, landlord):
    existing = db.query(Property).filter(Property.landlord_id == landlord.id).first()
    if existing:
        print(f"Demo property already exists: {existing.name} (id: {existing.id})")
        return existing

    prop = Property(landlord_id=landlord.id, name="Demo House", address="1 Example Street")
    db.add(prop)
    db.commit()
    db.refresh(prop)
    print(f"Created demo property: {prop.name} (id: {prop.id})")
    return prop


def seed_demo() -> None:
    db = SessionLocal()
    try:
        landlord = seed_landlord(db)
        seed_demo_property(db, landlord)
    finally:
        db.close()


def sweep_expired() -> int:
    db = SessionLocal()
    try:
        marked = sweep_expired_invites(InviteStore(db))
        print(f"Marked {marked} invite(s) as EXPIRED")
        return marked
    finally:
        db.close()


COMMANDS = {
    "seed-demo": seed_demo,
    "sweep-expired": sweep_expired,
}


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(prog="property-invites")
    parser.add_argument("command", choices=sorted(COMMANDS))
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    COMMANDS[args.command]()


if __name__ == "__main__":
    main()
