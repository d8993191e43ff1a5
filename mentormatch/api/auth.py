import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from mentormatch import models
from mentormatch.crud import user as user_crud
from mentormatch.database import get_db
from mentormatch.models.user import ApplicationStatus, UserRole
from mentormatch.schemas.auth import LoginRequest, RegisterRequest, Token
from mentormatch.utils.security import authenticate_user, create_token_for_user, get_password_hash

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

SELF_SERVICE_ROLES = {UserRole.MENTOR.value, UserRole.MENTEE.value}


# ===== REGISTER ENDPOINT =====

@router.post("/register")
async def register(user_data: RegisterRequest, db: Session = Depends(get_db)):
    """Register a mentor or mentee; the application starts as pending review."""
    requested_role = user_data.role.strip().lower()
    if requested_role not in SELF_SERVICE_ROLES:
        raise HTTPException(status_code=400, detail="Role must be one of: mentor, mentee")

    normalized_email = user_data.email.strip().lower()
    if user_crud.get_user_by_email(db, normalized_email):
        raise HTTPException(status_code=400, detail="Email already registered")

    try:
        new_user = models.User(
            name=user_data.name.strip(),
            email=normalized_email,
            password_hash=get_password_hash(user_data.password),
            role=requested_role,
            application_status=ApplicationStatus.PENDING.value,
            is_active=True,
        )
        db.add(new_user)
        db.flush()

        profile = models.UserProfile(
            user_id=new_user.id,
            display_name=user_data.name.strip(),
            program=user_data.program,
            major=user_data.major,
            expertise_areas=list(user_data.expertise_areas),
            interests=list(user_data.interests),
            mentoring_goals=user_data.mentoring_goals,
        )
        db.add(profile)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Registration failed for %s", normalized_email)
        raise HTTPException(status_code=500, detail="Internal server error")

    return {
        "message": "Registration successful",
        "id": new_user.id,
        "application_status": new_user.application_status,
    }


# ===== LOGIN ENDPOINT =====

@router.post("/login", response_model=Token)
async def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    """Verify credentials and return access token"""
    user = authenticate_user(db, credentials.email.strip(), credentials.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return {
        "access_token": create_token_for_user(user),
        "token_type": "bearer",
        "role": user.role,
    }
