from datetime import datetime, timezone

from sqlalchemy.orm import Session
from ..db import models
from . import security


def authenticate_admin(db: Session, username: str, password: str) -> models.AdminUser | None:
    admin = db.query(models.AdminUser).filter_by(username=username).first()
    if not admin:
        return None
    if not security.verify_password(password, admin.password_hash):
        return None
    admin.last_login_at = datetime.now(timezone.utc)
    db.commit()
    return admin
