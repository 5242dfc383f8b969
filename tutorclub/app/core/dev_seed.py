import logging
import os

from sqlalchemy.orm import Session

from tutorclub.app.core.security import get_password_hash
from tutorclub.app.models.user import User

logger = logging.getLogger(__name__)

DEFAULT_DEV_PASSWORD = "Secret123!"
DEFAULT_DEV_ADMINS = [
    "admin@tutorclub.dev",
]


def ensure_default_dev_admin(db: Session) -> None:
    """
    Create a default admin user for local development if it does not exist.
    Skips execution when running under pytest to avoid altering test expectations.
    """
    if os.getenv("PYTEST_CURRENT_TEST"):
        return

    created = False
    for email in DEFAULT_DEV_ADMINS:
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            continue

        user = User(
            email=email,
            full_name="Dev Admin",
            hashed_password=get_password_hash(DEFAULT_DEV_PASSWORD),
            is_active=True,
            is_admin=True,
        )
        db.add(user)
        created = True
        logger.info("Seeded development admin %s", email)

    if created:
        db.commit()
