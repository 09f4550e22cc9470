"""File management web pages."""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from sqlalchemy.orm import Session

from file_ingestion.config import settings
from file_ingestion.db import get_db
from file_ingestion.errors import AuthenticationRequired
from file_ingestion.schemas.ingestion import FILE_NAME_MAX_LENGTH, MetadataUpdate
from file_ingestion.services.auth_dependencies import (
    ROLE_DESCRIPTIONS,
    authenticate_token,
    can_edit,
)
from file_ingestion.services.exceptions import IngestionValidationError
from file_ingestion.services.ingestion import format_file_size, ingestion_files, parse_tags

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))
templates.env.filters["filesize"] = format_file_size
templates.env.filters["taglist"] = parse_tags

router = APIRouter(prefix="/files", tags=["web-files"])


def get_session_token(request: Request) -> str | None:
    """Extract session token from cookie or Authorization header."""
    cookie_token = request.cookies.get("session_token")
    if cookie_token:
        return cookie_token

    auth_header = request.headers.get("authorization")
    if auth_header:
        parts = auth_header.split(" ", 1)
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1].strip()

    return None


def require_web_user(request: Request) -> dict:
    token = get_session_token(request)
    if not token:
        raise AuthenticationRequired(settings.login_url)
    try:
        return authenticate_token(token)
    except HTTPException as exc:
        if exc.status_code == 401:
            raise AuthenticationRequired(settings.login_url) from exc
        raise


def require_web_editor(user: dict = Depends(require_web_user)) -> dict:
    if not can_edit(user):
        raise HTTPException(status_code=403, detail="Forbidden")
    return user


def _list_context(
    db: Session,
    user: dict,
    file_name: Optional[str] = None,
    status: Optional[str] = None,
    error: Optional[str] = None,
) -> dict:
    return {
        "user": user,
        "can_edit": can_edit(user),
        "role_description": ROLE_DESCRIPTIONS.get(
            user["role"], "Role information not available."
        ),
        "items": ingestion_files.list(db, file_name=file_name, status=status),
        "filters": {"file_name": file_name or "", "status": status or ""},
        "error": error,
    }


@router.get("", response_class=HTMLResponse)
def files_page(
    request: Request,
    file_name: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    user: dict = Depends(require_web_user),
):
    """File management table with filters."""
    return templates.TemplateResponse(
        request,
        "files/index.html",
        _list_context(db, user, file_name=file_name, status=status),
    )


@router.post("/upload", response_class=HTMLResponse)
def upload_file(
    request: Request,
    file: Optional[UploadFile] = File(default=None),
    tags: str = Form(default=""),
    file_name: Optional[str] = Form(default=None),
    db: Session = Depends(get_db),
    user: dict = Depends(require_web_editor),
):
    tag_list = parse_tags(tags)
    error = None
    if file is None or not file.filename:
        error = "Select a file to upload."
    elif not tag_list:
        error = "Add at least one tag before uploading."
    if error is None:
        try:
            ingestion_files.upload(
                db,
                data=file.file.read(),
                original_file_name=file.filename,
                tags=",".join(tag_list),
                file_name=file_name,
            )
        except IngestionValidationError as exc:
            error = exc.message
    if error is not None:
        return templates.TemplateResponse(
            request,
            "files/index.html",
            _list_context(db, user, error=error),
            status_code=400,
        )
    return RedirectResponse(url="/files", status_code=303)


@router.get("/{metadata_id}/edit", response_class=HTMLResponse)
def edit_metadata_page(
    request: Request,
    metadata_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_web_editor),
):
    metadata = ingestion_files.get_metadata(db, metadata_id)
    return templates.TemplateResponse(
        request,
        "files/edit.html",
        {"user": user, "item": metadata, "error": None},
    )


def _form_error_message(exc: ValidationError) -> str:
    for error in exc.errors():
        if error.get("type") == "string_too_long":
            return f"File name must be at most {FILE_NAME_MAX_LENGTH} characters."
    return "Some fields are invalid. Please check the form and try again."


@router.post("/{metadata_id}/edit", response_class=HTMLResponse)
def edit_metadata(
    request: Request,
    metadata_id: int,
    file_name: str = Form(default=""),
    tags: str = Form(default=""),
    db: Session = Depends(get_db),
    user: dict = Depends(require_web_editor),
):
    error = None
    try:
        payload = MetadataUpdate(file_name=file_name, tags=tags)
        ingestion_files.update_metadata(db, metadata_id, payload)
    except ValidationError as exc:
        error = _form_error_message(exc)
    except IngestionValidationError as exc:
        error = exc.message
    if error is not None:
        metadata = ingestion_files.get_metadata(db, metadata_id)
        return templates.TemplateResponse(
            request,
            "files/edit.html",
            {"user": user, "item": metadata, "error": error},
            status_code=400,
        )
    return RedirectResponse(url="/files", status_code=303)


@router.get("/{file_id}/delete", response_class=HTMLResponse)
def delete_confirm_page(
    request: Request,
    file_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_web_editor),
):
    ingestion_file = ingestion_files.get_file_record(db, file_id)
    return templates.TemplateResponse(
        request,
        "files/delete.html",
        {"user": user, "file": ingestion_file},
    )


@router.post("/{file_id}/delete")
def delete_file(
    file_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_web_editor),
):
    ingestion_files.delete_file(db, file_id)
    return RedirectResponse(url="/files", status_code=303)
