"""FastAPI dependencies shared by the routers"""
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from seshprep.blobstore import BlobStore, build_blob_store
from seshprep.context import RequestContext
from seshprep.database import get_db
from seshprep.errors import NotAuthenticated
from seshprep.mailer import Mailer, build_mailer
from seshprep.models import User
from seshprep.security import decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials:
        raise NotAuthenticated("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload.get("purpose") not in (None, "access"):
        raise NotAuthenticated("Could not validate credentials")

    user = db.query(User).filter(User.id == int(payload["sub"])).first()
    if user is None or not user.is_active:
        raise NotAuthenticated("Could not validate credentials")
    return user


def get_request_context(current_user: User = Depends(get_current_user)) -> RequestContext:
    return RequestContext.for_user(current_user)


@lru_cache()
def get_mailer() -> Mailer:
    return build_mailer()


@lru_cache()
def get_blob_store() -> BlobStore:
    return build_blob_store()
