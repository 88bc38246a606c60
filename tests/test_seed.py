from fixmycity.config.database import Database
from fixmycity.config.settings import settings
from fixmycity.models.user import Role, User
from fixmycity.utils.security import verify_password
from seed_db import seed


def test_seed_creates_super_admin_once():
    database = Database("sqlite://")
    try:
        first = seed(database)
        second = seed(database)
        assert first.id == second.id

        with database.session() as db:
            admins = db.query(User).filter(User.role == Role.SUPER_ADMIN.value).all()
        assert len(admins) == 1
        assert admins[0].email == settings.DEFAULT_SUPERADMIN_EMAIL
        assert verify_password(settings.DEFAULT_SUPERADMIN_PASSWORD, admins[0].hashed_password)
    finally:
        database.dispose()
