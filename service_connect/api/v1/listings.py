from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from service_connect.api.deps import get_current_user
from service_connect.core.errors import success_response
from service_connect.db.session import get_db
from service_connect.models import User
from service_connect.schemas.listings import ListingCategory, ListingCreateRequest, ListingRead
from service_connect.services import listing_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/listings", tags=["listings"])


@router.get("")
def list_listings(
    category: ListingCategory | None = Query(default=None),
    q: str | None = Query(default=None, max_length=100),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    rows = listing_service.list_listings(db, category=category, query=q, limit=limit, offset=offset)
    return success_response([ListingRead.model_validate(row).model_dump(mode="json") for row in rows])


@router.get("/{listing_id}")
def get_listing(listing_id: str, db: Session = Depends(get_db)):
    listing = listing_service.require_active_listing(db, listing_id)
    return success_response(ListingRead.model_validate(listing).model_dump(mode="json"))


@router.post("")
def create_listing(
    payload: ListingCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    logger.info("Create listing endpoint hit user_id=%s category=%s", current_user.id, payload.category)
    listing = listing_service.create_listing(db, owner=current_user, payload=payload)
    return success_response(
        ListingRead.model_validate(listing).model_dump(mode="json"),
        status_code=status.HTTP_201_CREATED,
    )


@router.delete("/{listing_id}")
def deactivate_listing(
    listing_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    listing = listing_service.deactivate_listing(db, requester=current_user, listing_id=listing_id)
    return success_response(ListingRead.model_validate(listing).model_dump(mode="json"))
