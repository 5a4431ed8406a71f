"""Version 1 routers"""
from fastapi import APIRouter

from seshprep.api.v1 import (
    admin,
    auth,
    billing,
    collections,
    files,
    members,
    password_reset,
    projects,
    tasks,
    users,
    workspace,
)

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(members.project_router, prefix="/projects", tags=["members"])
api_router.include_router(collections.router, prefix="/collections", tags=["collections"])
api_router.include_router(members.collection_router, prefix="/collections", tags=["members"])
api_router.include_router(tasks.router, tags=["tasks"])
api_router.include_router(files.router, tags=["files"])
api_router.include_router(workspace.router, prefix="/workspace", tags=["workspace"])
api_router.include_router(billing.router, prefix="/billing", tags=["billing"])
api_router.include_router(password_reset.router, prefix="/password-reset", tags=["password-reset"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
