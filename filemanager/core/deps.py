# filemanager/core/deps.py
from fastapi import Depends, Request

from filemanager.services.context import FileManagerContext
from filemanager.services.files import FileService


def get_context(request: Request) -> FileManagerContext:
    return request.app.state.ctx


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# --- per-request service bound to the caller's ip / user agent ---
def get_file_service(request: Request, ctx: FileManagerContext = Depends(get_context)) -> FileService:
    return FileService(
        ctx,
        ip=get_client_ip(request),
        user_agent=request.headers.get("user-agent", "unknown"),
    )
