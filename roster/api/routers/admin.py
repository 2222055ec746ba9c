"""
Admin console endpoints.

Admins sign in with a long-lived token and manage the uploads they own:
upload, list, browse, build filters and delete.
"""
import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from roster.api.dependencies import get_owned_upload, get_record_store
from roster.api.routers.uploads import list_records_payload, run_upload
from roster.api.schemas.auth import AdminLoginResponse, UserLogin, UserRegister, UserResponse
from roster.api.schemas.uploads import DeleteUploadResponse, UploadInfo, UploadResponse
from roster.core.config import settings
from roster.core.security import (
    User,
    admin_exists,
    authenticate_user,
    create_access_token,
    create_user,
    require_admin,
)
from roster.db.session import get_db
from roster.domain.records.store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/login", response_model=AdminLoginResponse)
async def admin_login(credentials: UserLogin, db: Session = Depends(get_db)):
    """
    Sign in to the admin console.

    Returns a token valid for ``admin_token_expire_days`` days.
    """
    user = authenticate_user(db, credentials.username, credentials.password)
    if user is None or not user.is_admin or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid username or password")

    token = create_access_token(
        data={"sub": user.username},
        expires_delta=timedelta(days=settings.admin_token_expire_days),
    )
    logger.info("Admin %s signed in", user.username)
    return AdminLoginResponse(success=True, token=token, admin=UserResponse.model_validate(user))


@router.post("/create-initial", response_model=UserResponse, status_code=201)
async def create_initial_admin(user_data: UserRegister, db: Session = Depends(get_db)):
    """Create the first admin account; refused once any admin exists."""
    if admin_exists(db):
        raise HTTPException(status_code=400, detail="Admin already exists")

    user = create_user(
        db=db,
        username=user_data.username,
        password=user_data.password,
        full_name=user_data.full_name,
        role="admin",
    )
    logger.info("Created initial admin %s", user.username)
    return UserResponse.model_validate(user)


@router.post("/upload", response_model=UploadResponse)
async def admin_upload(
    file: Optional[UploadFile] = File(None),
    admin: User = Depends(require_admin),
    store: RecordStore = Depends(get_record_store),
):
    return await run_upload(store, file, admin.owner_id)


@router.get("/files")
async def list_admin_files(
    admin: User = Depends(require_admin),
    store: RecordStore = Depends(get_record_store),
):
    """Uploads made by this admin, newest first."""
    uploads, total = store.list_uploads(admin.owner_id, limit=settings.max_page_size, offset=0)
    return {
        "success": True,
        "files": [UploadInfo.model_validate(upload).model_dump(mode="json") for upload in uploads],
        "total": total,
    }


@router.delete("/files/{upload_id}", response_model=DeleteUploadResponse)
async def delete_admin_file(
    upload_id: str,
    admin: User = Depends(require_admin),
    store: RecordStore = Depends(get_record_store),
):
    if not store.delete_upload(upload_id, owner=admin.owner_id):
        raise HTTPException(status_code=404, detail="File not found")
    return DeleteUploadResponse(success=True, message="File removed")


@router.get("/files/{upload_id}/data")
async def get_admin_file_data(
    upload_id: str,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    search: Optional[str] = None,
    filters: Optional[str] = None,
    admin: User = Depends(require_admin),
    store: RecordStore = Depends(get_record_store),
):
    upload = get_owned_upload(store, upload_id, admin.owner_id)
    return list_records_payload(store, upload, page, limit, search, filters, None, None)


@router.get("/files/{upload_id}/unique-values")
async def get_admin_unique_values(
    upload_id: str,
    admin: User = Depends(require_admin),
    store: RecordStore = Depends(get_record_store),
):
    upload = get_owned_upload(store, upload_id, admin.owner_id)
    values = store.unique_values(upload, limit_per_column=settings.unique_values_limit)
    return {"success": True, "uniqueValues": values, "totalColumns": len(values)}
