from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel
from sqlalchemy.orm import Session
from ...core import security
from ...core.auth import authenticate_admin
from ...db.session import get_db
from ...config import get_settings
from .. import deps


router = APIRouter(prefix="/auth", tags=["auth"])


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict


@router.post("/login", response_model=TokenResponse)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    admin = authenticate_admin(db, form_data.username, form_data.password)
    if not admin:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")
    settings = get_settings()
    token = security.create_access_token(
        {"sub": str(admin.id), "role": admin.role},
        timedelta(minutes=settings.jwt_expire_min),
    )
    return TokenResponse(
        access_token=token,
        user={"id": admin.id, "username": admin.username, "role": admin.role},
    )


@router.get("/me")
def me(current=Depends(deps.get_current_admin)):
    admin = current
    return {"id": admin.id, "username": admin.username, "role": admin.role}
