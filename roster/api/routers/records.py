"""
Single stored row lookup, edit and removal, plus per-owner statistics.
"""
from fastapi import APIRouter, Depends, HTTPException

from roster.api.dependencies import get_record_store
from roster.api.schemas.uploads import (
    DeleteRecordResponse,
    RecordUpdate,
    StatsResponse,
    StoredRecordResponse,
)
from roster.core.security import User, get_current_user
from roster.domain.records.store import RecordStore, serialize_record

router = APIRouter(prefix="/api", tags=["records"])


@router.get("/records/{record_id}", response_model=StoredRecordResponse)
async def get_record(
    record_id: str,
    current_user: User = Depends(get_current_user),
    store: RecordStore = Depends(get_record_store),
):
    record = store.get_record(record_id, owner=current_user.owner_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return StoredRecordResponse(success=True, record=serialize_record(record))


@router.put("/records/{record_id}", response_model=StoredRecordResponse)
async def update_record(
    record_id: str,
    update: RecordUpdate,
    current_user: User = Depends(get_current_user),
    store: RecordStore = Depends(get_record_store),
):
    """Edit cells of one stored row; unknown headers are added as new cells."""
    try:
        record = store.update_record(record_id, update.raw_data, owner=current_user.owner_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return StoredRecordResponse(success=True, record=serialize_record(record))


@router.delete("/records/{record_id}", response_model=DeleteRecordResponse)
async def delete_record(
    record_id: str,
    current_user: User = Depends(get_current_user),
    store: RecordStore = Depends(get_record_store),
):
    if not store.delete_record(record_id, owner=current_user.owner_id):
        raise HTTPException(status_code=404, detail="Record not found")
    return DeleteRecordResponse(success=True, message="Record deleted")


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    current_user: User = Depends(get_current_user),
    store: RecordStore = Depends(get_record_store),
):
    """Upload counts by status and total stored rows for the caller."""
    overview = store.count_overview(owner=current_user.owner_id)
    return StatsResponse(success=True, **overview)
