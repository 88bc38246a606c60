import logging

from fixmycity.config.database import Database
from fixmycity.config.settings import settings
from fixmycity.models.user import Role, User
from fixmycity.utils.logger import init_logging
from fixmycity.utils.security import get_password_hash

logger = logging.getLogger("fixmycity.seed")


def seed(database: Database = None):
    database = database or Database(settings.DATABASE_URL)
    # Ensure tables exist
    database.create_all()

    db = database.session()
    try:
        email = settings.DEFAULT_SUPERADMIN_EMAIL
        user = db.query(User).filter(User.email == email).first()
        if user:
            logger.info("Super admin already exists", extra={"email": email})
            return user

        logger.info("Creating super admin", extra={"email": email})
        user = User(
            name=settings.DEFAULT_SUPERADMIN_NAME,
            email=email,
            hashed_password=get_password_hash(settings.DEFAULT_SUPERADMIN_PASSWORD, rounds=settings.BCRYPT_ROUNDS),
            role=Role.SUPER_ADMIN.value,
            is_active=True,
        )
        db.add(user)
        db.commit()
        return user
    finally:
        db.close()


if __name__ == "__main__":
    init_logging(settings)
    seed()
