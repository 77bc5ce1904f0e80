"""
Upload router: home page, upload form, upload endpoint, success page.

Delegates validation and storage to services.upload_service. Every route
needs a session: GET pages redirect anonymous callers to login, the upload
POST answers 401 before the multipart body is read. The upload result is not
stored anywhere; the success page is rendered from the redirect's query string.
"""
import logging
from datetime import datetime, UTC
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from auth import get_optional_user, get_settings, login_redirect
from config import ALLOWED_CONTENT_TYPES, Settings
from exceptions import BadUpload
from models import UPLOAD_TIME_FORMAT, FileUpload, User
from pages import APP_TITLE, render, render_error
from services.storage_service import StorageGateway
from services.upload_service import store_upload, validate_upload

logger = logging.getLogger(__name__)

router = APIRouter()

UPLOAD_FIELD = "file"


def get_storage(request: Request) -> StorageGateway:
    return request.app.state.storage


@router.get("/")
def home(
    request: Request,
    user: User | None = Depends(get_optional_user),
    settings: Settings = Depends(get_settings),
):
    if user is None:
        logger.info("No user session found, redirecting to %s", settings.login_url)
        return login_redirect(settings)
    return render(
        request,
        "home.html",
        title=f"{APP_TITLE} - Home",
        user=user,
        logout_url=settings.auth_url("/logout"),
    )


@router.get("/upload")
def upload_form(
    request: Request,
    user: User | None = Depends(get_optional_user),
    settings: Settings = Depends(get_settings),
):
    if user is None:
        return login_redirect(settings)
    return render(
        request,
        "upload.html",
        title=f"Upload File - {APP_TITLE}",
        user=user,
        logout_url=settings.auth_url("/logout"),
        max_file_size=settings.max_upload_bytes,
        allowed_types=sorted(ALLOWED_CONTENT_TYPES),
        bucket_name=settings.s3_bucket_name,
    )


@router.post("/upload")
@router.post("/api/upload")
async def upload_file(
    request: Request,
    user: User | None = Depends(get_optional_user),
    settings: Settings = Depends(get_settings),
    storage: StorageGateway = Depends(get_storage),
):
    """
    Accept one multipart "file" part, validate declared size and type, write it
    to storage and redirect (303) to /success with the result in the query.
    """
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    form = await request.form(max_files=1)
    try:
        part = form.get(UPLOAD_FIELD)
        if not isinstance(part, UploadFile):
            raise BadUpload("No file provided")
        content_type = validate_upload(
            part.filename,
            part.size,
            part.content_type,
            max_bytes=settings.max_upload_bytes,
        )
        data = await part.read()
        uploaded = await run_in_threadpool(
            store_upload, storage, user, part.filename, data, content_type
        )
    finally:
        await form.close()

    return RedirectResponse(url=f"/success?{urlencode(uploaded.success_query())}", status_code=303)


@router.get("/success")
def upload_success(
    request: Request,
    user: User | None = Depends(get_optional_user),
    settings: Settings = Depends(get_settings),
):
    if user is None:
        return login_redirect(settings)

    params = request.query_params
    filename = params.get("filename")
    size_raw = params.get("size")
    if not filename or not size_raw:
        return render_error(request, 404, "File information not found")

    try:
        size = int(size_raw)
    except ValueError:
        logger.warning("Unparseable size in success redirect: %r", size_raw)
        size = 0
    try:
        uploaded_at = datetime.strptime(params.get("uploadTime", ""), UPLOAD_TIME_FORMAT).replace(tzinfo=UTC)
    except ValueError:
        uploaded_at = datetime.now(UTC)

    upload = FileUpload(
        id=f"file_{int(uploaded_at.timestamp())}",
        filename=filename,
        size=size,
        content_type=params.get("contentType", ""),
        storage_url=params.get("url", ""),
        uploaded_at=uploaded_at,
        user_id=user.id,
    )
    return render(
        request,
        "success.html",
        title=f"Upload Successful - {APP_TITLE}",
        user=user,
        logout_url=settings.auth_url("/logout"),
        upload=upload,
    )
