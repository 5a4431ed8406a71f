"""Registration, sign-in and invitation lookup"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from seshprep.database import get_db
from seshprep.models import Project
from seshprep.schemas import InvitationLookupResponse, Token, UserCreate, UserLogin, UserResponse
from seshprep.security import create_access_token
from seshprep.services.accounts import authenticate, register_account
from seshprep.services.invitations import lookup_invitation_token

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(user_in: UserCreate, db: Session = Depends(get_db)):
    user = register_account(
        db,
        email=user_in.email,
        password=user_in.password,
        display_name=user_in.display_name,
        invitation_token=user_in.invitation_token,
    )
    db.commit()
    db.refresh(user)
    return user


@router.post("/login", response_model=Token)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    user = authenticate(db, credentials.email, credentials.password)
    db.commit()
    return Token(access_token=create_access_token(user.id))


@router.get("/invitations/{token}", response_model=InvitationLookupResponse)
def get_invitation(token: str, db: Session = Depends(get_db)):
    """Pre-fill the sign-up form without consuming the token."""
    invitation = lookup_invitation_token(db, token)
    project = db.get(Project, invitation.project_id)
    return InvitationLookupResponse(
        email=invitation.email,
        project_id=invitation.project_id,
        project_title=project.title if project else None,
        expires_at=invitation.expires_at,
    )
