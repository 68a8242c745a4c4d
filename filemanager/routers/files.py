import mimetypes
from typing import List, Literal, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse, RedirectResponse, StreamingResponse

from filemanager.core.deps import get_file_service
from filemanager.core.errors import PartialFailureException
from filemanager.core.filetypes import Category
from filemanager.core.templating import templates
from filemanager.models.records import ActionKind
from filemanager.services.files import FileService, IncomingFile, OpenedFile
from filemanager.storage.base import parent_of

router = APIRouter()

SortKey = Literal["name", "size", "uploaded", "modified", "downloads"]


def _back_to(path: str) -> RedirectResponse:
    return RedirectResponse(url=f"/?path={quote(path or '', safe='')}", status_code=303)


def _send(service: FileService, opened: OpenedFile, attachment: bool):
    media_type = mimetypes.guess_type(opened.name)[0] or "application/octet-stream"
    local = service.storage.local_path(opened.path)
    if local is not None:
        if attachment:
            return FileResponse(local, media_type=media_type, filename=opened.name)
        return FileResponse(local, media_type=media_type)

    # cloud backend: stream the object through
    disposition = "attachment" if attachment else "inline"
    return StreamingResponse(
        service.storage.open_stream(opened.path),
        media_type=media_type,
        headers={"Content-Disposition": f"{disposition}; filename=\"{opened.name}\""},
    )


@router.get("/ping", response_class=PlainTextResponse)
def ping():
    return "pong"


# --- dashboard: one folder level ---
@router.get("/", response_class=HTMLResponse)
def dashboard(
    request: Request,
    path: str = "",
    sort: Optional[SortKey] = None,
    order: Literal["asc", "desc"] = "asc",
    search: Optional[str] = None,
    service: FileService = Depends(get_file_service),
):
    listing = service.list_directory(path, sort, descending=order == "desc", search=search)
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "listing": listing,
            "current_path": listing.path,
            "sort": sort or service.settings.default_sort,
            "order": order,
            "search_query": search or "",
            "app_name": service.settings.app_name,
            "max_files": service.settings.max_files,
        },
    )


# --- upload one or more files into the current folder ---
@router.post("/upload")
async def upload_files(
    files: Optional[List[UploadFile]] = File(None),
    current_path: str = Form("", alias="currentPath"),
    service: FileService = Depends(get_file_service),
):
    incoming = [
        IncomingFile(filename=f.filename or "", stream=f.file, content_type=f.content_type, size=f.size)
        for f in files or []
    ]
    service.upload(incoming, current_path)
    return _back_to(current_path)


@router.post("/create-folder")
def create_folder(
    folder_name: str = Form("", alias="folderName"),
    current_path: str = Form("", alias="currentPath"),
    service: FileService = Depends(get_file_service),
):
    service.create_folder(folder_name, current_path)
    return _back_to(current_path)


@router.get("/preview/{path:path}", response_class=HTMLResponse)
def preview_file(request: Request, path: str, service: FileService = Depends(get_file_service)):
    opened = service.preview(path)
    return templates.TemplateResponse(
        request,
        "preview.html",
        {
            "file": opened.entry,
            "content": opened.content,
            "folder": parent_of(opened.path),
            "Category": Category,
        },
    )


@router.get("/raw/{path:path}")
def raw_file(path: str, service: FileService = Depends(get_file_service)):
    return _send(service, service.raw(path), attachment=False)


@router.get("/download/{path:path}")
def download_file(path: str, service: FileService = Depends(get_file_service)):
    return _send(service, service.download(path), attachment=True)


@router.get("/edit/{path:path}", response_class=HTMLResponse)
def edit_file(request: Request, path: str, service: FileService = Depends(get_file_service)):
    opened = service.edit_view(path)
    return templates.TemplateResponse(
        request,
        "editor.html",
        {"file": opened.entry, "content": opened.content, "folder": parent_of(opened.path)},
    )


@router.post("/save/{path:path}")
def save_file(
    path: str,
    content: Optional[str] = Form(None),
    service: FileService = Depends(get_file_service),
):
    entry = service.save(path, content)
    return _back_to(parent_of(entry.path))


@router.post("/delete-multiple")
def delete_multiple(
    items: List[str] = Form([]),
    current_path: str = Form("", alias="currentPath"),
    service: FileService = Depends(get_file_service),
):
    result = service.delete_many(items)
    if result.failed:
        raise PartialFailureException(
            f"Successfully deleted {result.deleted} items, but encountered errors with {result.failed} items.",
            data={"deleted": result.deleted, "failed": result.failed, "errors": result.errors},
        )
    return _back_to(current_path)


@router.post("/delete/{path:path}")
def delete_item(path: str, service: FileService = Depends(get_file_service)):
    folder = service.delete(path)
    return _back_to(folder)


@router.post("/rename/{path:path}")
def rename_item(
    path: str,
    new_name: str = Form("", alias="newName"),
    service: FileService = Depends(get_file_service),
):
    new_path = service.rename(path, new_name)
    return _back_to(parent_of(new_path))


@router.post("/copy/{path:path}")
def copy_item(
    path: str,
    destination_path: Optional[str] = Form(None, alias="destinationPath"),
    service: FileService = Depends(get_file_service),
):
    service.copy(path, destination_path)
    return _back_to(parent_of(path.strip("/")))


@router.get("/share/{path:path}", response_class=HTMLResponse)
def share_item(request: Request, path: str, service: FileService = Depends(get_file_service)):
    name, link = service.share(path, str(request.base_url))
    return templates.TemplateResponse(request, "share.html", {"name": name, "link": link})


@router.get("/history", response_class=HTMLResponse)
def history(
    request: Request,
    action: Optional[ActionKind] = None,
    service: FileService = Depends(get_file_service),
):
    return templates.TemplateResponse(
        request,
        "history.html",
        {"history": service.history(action), "action": action, "actions": list(ActionKind)},
    )


# Auth is out of scope: the admin page is open like every other route.
@router.get("/admin", response_class=HTMLResponse)
def admin_panel(request: Request, service: FileService = Depends(get_file_service)):
    return templates.TemplateResponse(request, "admin.html", {"info": service.admin_summary()})
