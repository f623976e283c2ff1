import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.security import create_access_token, verify_password
from app.db import models
from app.db.session import get_db

router = APIRouter(tags=["Auth"])
logger = logging.getLogger("gtmi.auth")


class LoginRequest(BaseModel):
    usuario: str
    senha: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str
    role: str


def _authenticate(db: Session, username: str, password: str) -> models.User:
    normalized = username.strip().lower()
    query = db.query(models.User).join(models.Tenant, models.Tenant.id == models.User.tenant_id)
    query = query.filter(models.Tenant.status == "ATIVO")
    query = query.filter(
        or_(
            func.lower(models.User.login) == normalized,
            func.lower(models.User.email) == normalized,
        )
    )
    user = query.order_by(models.User.created_at.desc()).first()
    if not user or not verify_password(password, user.password_hash):
        logger.info("login failed usuario=%s", normalized)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Utilizador ou senha invalidos"
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Utilizador inativo")
    return user


def _issue_token(user: models.User) -> dict:
    token = create_access_token({"sub": user.id, "tenant_id": user.tenant_id, "role": user.role})
    return {"access_token": token, "token_type": "bearer", "role": user.role}


@router.post("/auth/login", response_model=LoginResponse, summary="Login JSON (frontend)")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    """
    Uso tipico via frontend/script JSON:
    - POST /api/auth/login
    - body: {"usuario": "...", "senha": "..."}
    """
    return _issue_token(_authenticate(db, payload.usuario, payload.senha))


@router.post("/auth/token", response_model=LoginResponse, summary="Login OAuth2 (Swagger)")
def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)
):
    return _issue_token(_authenticate(db, form_data.username, form_data.password))
