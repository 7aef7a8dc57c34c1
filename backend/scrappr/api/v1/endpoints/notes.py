from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Query, status

from scrappr.api.v1.schemas.note import NoteDeleteResult, NoteRead, NoteWrite
from scrappr.core.services.filter_service import visible
from scrappr.dependencies import get_current_user, get_note_service
from scrappr.utils.links import tokenize
from scrappr.utils.validation import parse_tags

if TYPE_CHECKING:
    from scrappr.core.models.note import Note
    from scrappr.core.schemas.auth import AuthUser
    from scrappr.core.services.note_service import NoteService

router = APIRouter()


def _to_read(note: Note) -> NoteRead:
    return NoteRead(
        id=note.id,
        content=note.content,
        tags=note.tags,
        created_at=note.created_at,
        timestamp=note.timestamp,
        segments=tokenize(note.content),
    )


@router.post("/", response_model=NoteRead, status_code=status.HTTP_201_CREATED)
async def create_note(
    payload: NoteWrite,
    current_user: AuthUser = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
):
    note_id = await service.create_note(current_user.owner, payload.content, payload.tags)
    note = await service.get_note(current_user.owner, note_id)
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return _to_read(note)


@router.get("/", response_model=list[NoteRead])
async def list_notes(
    tag: list[str] | None = Query(default=None, description="Only notes carrying any of these tags"),
    current_user: AuthUser = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
):
    """List the user's notes, newest first, optionally filtered by tag."""
    notes = await service.list_notes(current_user.owner)
    return [_to_read(n) for n in visible(notes, parse_tags(tag))]


@router.get("/{note_id}", response_model=NoteRead)
async def get_note(
    note_id: str,
    current_user: AuthUser = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
):
    note = await service.get_note(current_user.owner, note_id)
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return _to_read(note)


@router.put("/{note_id}", response_model=NoteRead)
async def update_note(
    note_id: str,
    payload: NoteWrite,
    current_user: AuthUser = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
):
    await service.update_note(current_user.owner, note_id, payload.content, payload.tags)
    note = await service.get_note(current_user.owner, note_id)
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return _to_read(note)


@router.delete("/{note_id}", response_model=NoteDeleteResult)
async def delete_note(
    note_id: str,
    current_user: AuthUser = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
):
    """Delete a note. Deleting a missing note succeeds with ``deleted: false``."""
    deleted = await service.delete_note(current_user.owner, note_id)
    return NoteDeleteResult(deleted=deleted)
