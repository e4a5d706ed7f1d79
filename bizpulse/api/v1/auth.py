"""
Authentication API Routes
"""
import json
import logging
from typing import Any, Dict, Optional, Tuple, Type

from fastapi import APIRouter, Depends, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from bizpulse.core.database import get_db
from bizpulse.core.dates import isoformat
from bizpulse.core.exceptions import (
    AuthenticationException, DuplicateResourceException, NotFoundException, ValidationException
)
from bizpulse.core.responses import api_response
from bizpulse.core.security import create_access_token, get_current_user
from bizpulse.models import User, Business
from bizpulse.schemas import LoginRequest, RegisterRequest, ProfileUpdateRequest, TokenPayload
from bizpulse.services.business_service import BusinessService
from bizpulse.services.logo_storage import LocalLogoStorage
from bizpulse.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def get_logo_storage(request: Request) -> LocalLogoStorage:
    return request.app.state.logo_storage


def _business_field(key: str) -> Optional[str]:
    """'business.name' or 'business[name]' -> 'name'"""
    if key.startswith("business.") and len(key) > len("business."):
        return key[len("business."):]
    if key.startswith("business[") and key.endswith("]"):
        return key[len("business["):-1]
    return None


async def _read_body(request: Request, schema: Type[BaseModel]) -> Tuple[Any, Optional[UploadFile]]:
    """
    Parse a JSON or form body into ``schema``. Form bodies may carry the
    business as a JSON string in ``business`` or as ``business.<field>``
    parts, plus an optional ``logo`` file.
    """
    content_type = request.headers.get("content-type", "")
    logo = None

    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        data: Dict[str, Any] = {}
        business: Dict[str, Any] = {}
        for key, value in form.multi_items():
            if key == "logo":
                if isinstance(value, UploadFile) and value.filename:
                    logo = value
                continue
            if key == "business":
                try:
                    business.update(json.loads(value))
                except (TypeError, ValueError):
                    raise ValidationException("business must be a JSON object", field="business")
                continue
            field = _business_field(key)
            if field:
                business[field] = value
            else:
                data[key] = value
        if business:
            data["business"] = business
    else:
        try:
            data = await request.json()
        except ValueError:
            raise ValidationException("Request body must be valid JSON")

    try:
        return schema.model_validate(data), logo
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False))


def _user_dict(user: User, with_updated: bool = False) -> Dict[str, Any]:
    data = {
        "id": user.id,
        "email": user.email,
        "isAdmin": user.is_admin,
        "createdAt": isoformat(user.created_at),
    }
    if with_updated:
        data["updatedAt"] = isoformat(user.updated_at)
    return data


def _business_dict(business: Business, full: bool = False) -> Dict[str, Any]:
    data = {
        "id": business.id,
        "name": business.name,
        "category": business.category,
        "currency": business.currency,
        "timezone": business.timezone,
        "logoUrl": business.logo_url,
        "settings": business.settings,
        "createdAt": isoformat(business.created_at),
    }
    if full:
        data.update({
            "description": business.description,
            "address": business.address,
            "phone": business.phone,
            "taxId": business.tax_id,
            "updatedAt": isoformat(business.updated_at),
        })
    return data


def _issue_token(user: User, business: Business) -> str:
    return create_access_token(TokenPayload(
        user_id=user.id,
        business_id=business.id,
        email=user.email,
        is_admin=user.is_admin
    ))


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: Request,
    db: Session = Depends(get_db),
    logo_storage: LocalLogoStorage = Depends(get_logo_storage)
):
    """Register a user together with their business"""
    register_data, logo = await _read_body(request, RegisterRequest)
    user_service = UserService(db)

    if user_service.get_by_email(register_data.email):
        raise DuplicateResourceException("User already exists with this email")

    user = user_service.create(register_data.email, register_data.password)
    business = BusinessService(db).create(register_data.business, user.id)

    # Stored only once the rows are flushed; removed again if the commit fails
    logo_url = await logo_storage.save(logo) if logo else None
    try:
        if logo_url:
            business.logo_url = logo_url
        db.commit()
    except Exception:
        if logo_url:
            logo_storage.discard(logo_url)
        raise

    logger.info(f"Registered user {user.id} with business {business.id}")
    return api_response(
        data={
            "token": _issue_token(user, business),
            "user": _user_dict(user),
            "business": _business_dict(business),
        },
        message="User registered successfully",
        status_code=status.HTTP_201_CREATED
    )


@router.post("/login")
async def login(
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """Login and get access token"""
    user = UserService(db).authenticate(login_data.email, login_data.password)
    if not user:
        raise AuthenticationException("Invalid credentials")

    business = BusinessService(db).get_by_user(user.id)
    if not business:
        raise NotFoundException("Business not found")

    return api_response(
        data={
            "token": _issue_token(user, business),
            "user": _user_dict(user),
            "business": _business_dict(business),
        },
        message="Login successful"
    )


@router.get("/profile")
async def get_profile(
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user)
):
    user = UserService(db).get_by_id(current_user.user_id)
    business = BusinessService(db).get_by_user(current_user.user_id)
    if not user or not business:
        raise NotFoundException("User or business not found")

    return api_response(data={
        "user": _user_dict(user, with_updated=True),
        "business": _business_dict(business, full=True),
    })


@router.put("/profile")
async def update_profile(
    request: Request,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user),
    logo_storage: LocalLogoStorage = Depends(get_logo_storage)
):
    """Update business fields, merge settings, optionally replace the logo"""
    profile_data, logo = await _read_body(request, ProfileUpdateRequest)
    business_service = BusinessService(db)
    if not business_service.get_by_user(current_user.user_id):
        raise NotFoundException("Business not found")

    logo_url = await logo_storage.save(logo) if logo else None
    try:
        business = business_service.update(current_user.user_id, profile_data.business, logo_url=logo_url)
        db.commit()
    except Exception:
        if logo_url:
            logo_storage.discard(logo_url)
        raise
    db.refresh(business)

    return api_response(
        data={"business": _business_dict(business, full=True)},
        message="Profile updated successfully"
    )


@router.post("/refresh-token")
async def refresh_token(current_user: TokenPayload = Depends(get_current_user)):
    """Issue a fresh token carrying the current claims"""
    return api_response(
        data={"token": create_access_token(current_user)},
        message="Token refreshed successfully"
    )
