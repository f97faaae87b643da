from hydrolog.config.database import SessionLocal, Base, engine
from hydrolog.config.settings import settings
from hydrolog.features.auth.service import register_user
from hydrolog.models import plant, session, system, system_log, user_system  # noqa: F401 register tables
from hydrolog.models.user import User

# Local development only
DEV_ADMIN_PASSWORD = "admin123"

def admin_password():
    if settings.ADMIN_PASSWORD:
        return settings.ADMIN_PASSWORD
    if settings.is_production:
        raise ValueError("ADMIN_PASSWORD must be set to seed a production database")
    return DEV_ADMIN_PASSWORD

def seed(db=None):
    owns_session = db is None
    if owns_session:
        # Ensure tables exist
        Base.metadata.create_all(bind=engine)
        db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == settings.ADMIN_EMAIL).first()
        if not user:
            print(f"Creating admin: {settings.ADMIN_EMAIL}")
            result = register_user(db, settings.ADMIN_EMAIL, admin_password(), name="Admin")
            if not result:
                raise RuntimeError(f"Could not create admin: {result.message}")
            user = result.value
        else:
            print("Admin already exists")
        if not user.is_admin:
            user.is_admin = True
            db.commit()
        return user
    finally:
        if owns_session:
            db.close()

if __name__ == "__main__":
    seed()
