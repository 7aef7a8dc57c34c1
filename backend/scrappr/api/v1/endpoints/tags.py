from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends

from scrappr.api.v1.schemas.tags import TagDeleteResult, TagIndexRead, TagsAdd
from scrappr.dependencies import get_current_user, get_tag_index_service
from scrappr.utils.validation import normalize_tag

if TYPE_CHECKING:
    from scrappr.core.schemas.auth import AuthUser
    from scrappr.core.services.tag_index_service import TagIndexService


router = APIRouter()


@router.get("/tags", response_model=TagIndexRead)
async def get_tags(
    current_user: AuthUser = Depends(get_current_user),
    service: TagIndexService = Depends(get_tag_index_service),
) -> TagIndexRead:
    """Return every tag the user has used, sorted for the filter bar."""
    index = await service.get_tag_index(current_user.owner)
    return TagIndexRead(tags=index.sorted_tags())


@router.post("/tags", response_model=TagIndexRead)
async def add_tags(
    payload: TagsAdd,
    current_user: AuthUser = Depends(get_current_user),
    service: TagIndexService = Depends(get_tag_index_service),
) -> TagIndexRead:
    await service.add_tags(current_user.owner, payload.tags)
    index = await service.get_tag_index(current_user.owner)
    return TagIndexRead(tags=index.sorted_tags())


@router.post("/tags/rebuild", response_model=TagIndexRead)
async def rebuild_tags(
    current_user: AuthUser = Depends(get_current_user),
    service: TagIndexService = Depends(get_tag_index_service),
) -> TagIndexRead:
    """Re-add every tag found on the user's notes to the index."""
    index = await service.rebuild_tag_index(current_user.owner)
    return TagIndexRead(tags=index.sorted_tags())


@router.delete("/tags/{tag}", response_model=TagDeleteResult)
async def delete_tag(
    tag: str,
    current_user: AuthUser = Depends(get_current_user),
    service: TagIndexService = Depends(get_tag_index_service),
) -> TagDeleteResult:
    """Delete a tag from the index and from all of the user's notes at once."""
    count = await service.delete_tag_globally(current_user.owner, tag)
    return TagDeleteResult(tag=normalize_tag(tag), notes_updated=count)
