from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mentormatch import models
from mentormatch.database import get_db
from mentormatch.schemas.user import User as UserSchema
from mentormatch.schemas.user import UserProfileUpdate
from mentormatch.utils.security import get_current_user

router = APIRouter(prefix="/users", tags=["Users"])

LIST_FIELDS = ("expertise_areas", "skills", "interests")


def _clean_terms(values: Optional[List[str]]) -> List[str]:
    seen = set()
    cleaned = []
    for value in values or []:
        term = str(value).strip()
        if term and term.lower() not in seen:
            seen.add(term.lower())
            cleaned.append(term)
    return cleaned


# ======================
# GET: Current user
# ======================
@router.get("/me", response_model=UserSchema)
def get_me(
    current_user: models.User = Depends(get_current_user),
):
    return current_user


# ======================
# PUT: Update matching profile
# ======================
@router.put("/me/profile", response_model=UserSchema)
def update_my_profile(
    payload: UserProfileUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Partial update; only fields present in the body are written."""
    profile = db.query(models.UserProfile).filter(
        models.UserProfile.user_id == current_user.id
    ).first()
    if not profile:
        profile = models.UserProfile(user_id=current_user.id, display_name=current_user.name)
        db.add(profile)

    updates = payload.model_dump(exclude_unset=True)
    for field in LIST_FIELDS:
        if field in updates:
            updates[field] = _clean_terms(updates[field])
    if "availability_slots" in updates:
        updates["availability_slots"] = [
            slot.model_dump(exclude_none=True) for slot in payload.availability_slots or []
        ]

    for field, value in updates.items():
        setattr(profile, field, value)

    db.commit()
    db.refresh(current_user)
    return current_user
