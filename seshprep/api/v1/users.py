"""Profile endpoints for the signed-in account"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from seshprep.database import get_db
from seshprep.dependencies import get_current_user
from seshprep.models import User
from seshprep.schemas import SignOutResponse, UserResponse, UserUpdate
from seshprep.services.accounts import update_profile

router = APIRouter()


@router.get("/me", response_model=UserResponse)
def read_current_user(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/me", response_model=UserResponse)
def update_current_user(
    changes: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = update_profile(db, current_user, changes.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(user)
    return user


@router.delete("/me", response_model=SignOutResponse)
def delete_current_user(current_user: User = Depends(get_current_user)):
    # account deletion is not offered yet; the client signs out
    return SignOutResponse(message="Signed out. Contact support to delete your account.", deleted=False)
