"""Provisioning endpoint for dashboard users."""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from expdash.database import get_db
from expdash.middleware.auth import create_user_with_api_key, generate_api_key, verify_admin_key
from expdash.middleware.logging import get_logger

router = APIRouter()
logger = get_logger()


class UserCreateRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    name: Optional[str] = Field(None, max_length=255)


class UserCreatedResponse(BaseModel):
    user_id: UUID
    email: str
    api_key: str
    note: str = "Save your API key! This is the only time it will be shown."


@router.post("/setup/users", response_model=UserCreatedResponse, status_code=201,
             dependencies=[Depends(verify_admin_key)])
async def create_user(
    user_request: UserCreateRequest,
    db: Session = Depends(get_db)
):
    """
    Create a dashboard user and return a freshly generated API key.

    Requires the admin key in `x-admin-key`.
    """
    api_key = generate_api_key()
    try:
        user = create_user_with_api_key(db, user_request.email, api_key, name=user_request.name)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="A user with this email already exists")

    logger.info("user_created", user_id=str(user.id))
    return UserCreatedResponse(user_id=user.id, email=user.email, api_key=api_key)
