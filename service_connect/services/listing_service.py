from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from service_connect.core.errors import ForbiddenError, NotFoundError
from service_connect.core.identifiers import normalize_id
from service_connect.models import Listing, User
from service_connect.schemas.listings import ListingCreateRequest

logger = logging.getLogger(__name__)


def get_listing(db: Session, listing_id: str) -> Listing | None:
    normalized = normalize_id(listing_id)
    if normalized is None:
        return None
    return db.get(Listing, normalized)


def require_active_listing(db: Session, listing_id: str) -> Listing:
    listing = get_listing(db, listing_id)
    if listing is None or not listing.is_active:
        logger.warning("Listing not found or inactive listing_id=%s", listing_id)
        raise NotFoundError("Listing not found", code="listing_not_found")
    return listing


def create_listing(db: Session, *, owner: User, payload: ListingCreateRequest) -> Listing:
    if owner.account_type != "provider":
        logger.warning("Non-provider attempted to post a listing user_id=%s", owner.id)
        raise ForbiddenError("Only providers can post listings", code="provider_required")

    listing = Listing(
        owner_id=owner.id,
        title=payload.title.strip(),
        description=payload.description.strip(),
        category=payload.category,
        price=payload.price,
        price_type=payload.price_type,
        location=payload.location.strip() if payload.location else None,
    )
    db.add(listing)
    db.commit()
    db.refresh(listing)
    logger.info("Listing created listing_id=%s owner_id=%s", listing.id, owner.id)
    return listing


def list_listings(
    db: Session,
    *,
    category: str | None = None,
    query: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[Listing]:
    stmt = select(Listing).where(Listing.is_active.is_(True))
    if category:
        stmt = stmt.where(Listing.category == category)
    if query:
        pattern = f"%{query.lower()}%"
        stmt = stmt.where(func.lower(Listing.title).like(pattern) | func.lower(Listing.description).like(pattern))
    rows = db.scalars(stmt.order_by(Listing.created_at.desc()).limit(limit).offset(offset)).all()
    return list(rows)


def deactivate_listing(db: Session, *, requester: User, listing_id: str) -> Listing:
    listing = require_active_listing(db, listing_id)
    if listing.owner_id != requester.id:
        logger.warning("Listing ownership check failed listing_id=%s user_id=%s", listing_id, requester.id)
        raise ForbiddenError("You cannot modify this listing", code="not_listing_owner")

    listing.is_active = False
    db.commit()
    logger.info("Listing deactivated listing_id=%s", listing_id)
    return listing
