# filemanager/routers/api.py
from typing import Optional

from fastapi import APIRouter, Depends

from filemanager.core.deps import get_file_service
from filemanager.core.errors import NotFoundException
from filemanager.models.records import ActionKind
from filemanager.services.files import FileService
from filemanager.services.reconciler import list_directory

router = APIRouter(prefix="/api", tags=["api"])


@router.get("/files")
def api_list_files(
    path: str = "",
    search: Optional[str] = None,
    service: FileService = Depends(get_file_service),
):
    """Folders and files of one level as JSON (no activity logged)."""
    listing = list_directory(service.storage, service.metadata, path, search=search)
    items = [
        {
            "id": folder.path,
            "name": folder.name,
            "type": "folder",
            "isManaged": False,
            "icon": folder.icon,
            "path": folder.path,
        }
        for folder in listing.folders
    ]
    for f in listing.files:
        items.append({
            "id": f.path,
            "fileId": f.file_id,
            "name": f.name,
            "type": f.category.value,
            "icon": f.icon,
            "path": f.path,
            "isManaged": f.managed,
            "size": f.size_display,
            "bytes": f.size,
            "uploaded": f.uploaded.isoformat(),
            "lastModified": f.last_modified.isoformat(),
            "downloads": f.downloads,
            "lastAccessed": f.last_accessed.isoformat() if f.last_accessed else None,
        })
    return items


@router.get("/files/{file_id}")
def api_file_record(file_id: str, service: FileService = Depends(get_file_service)):
    record = service.metadata.get(file_id)
    if record is None:
        raise NotFoundException(f"No file with id {file_id}.")
    return record.model_dump(mode="json")


@router.get("/history")
def api_history(
    action: Optional[ActionKind] = None,
    limit: Optional[int] = None,
    service: FileService = Depends(get_file_service),
):
    return [entry.model_dump(mode="json") for entry in service.history(action, limit)]
