# ridesharex/db/crud_listings.py
from typing import Tuple, List, Dict, Any, Optional

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ridesharex.db.models import Listing
from ridesharex.workflow.states import ListingApprovalStatus, ListingStatus

EDITABLE_FIELDS = (
    "title",
    "description",
    "make",
    "model",
    "year",
    "vehicle_type",
    "transmission",
    "fuel_type",
    "seats",
    "features",
    "price_per_day",
    "location",
    "images",
)


def _public_clauses():
    return [
        Listing.status == ListingStatus.APPROVED.value,
        Listing.approval_status == ListingApprovalStatus.APPROVED.value,
    ]


async def list_locations(db: AsyncSession) -> List[Dict[str, Any]]:
    """
    Return list of {location, count} objects for the search page.
    Only counts bookable (approved) listings.
    """
    stmt = (
        select(Listing.location, func.count(Listing.id).label("count"))
        .where(Listing.location != "")
        .where(*_public_clauses())
        .group_by(Listing.location)
        .order_by(func.count(Listing.id).desc())
    )
    res = await db.execute(stmt)
    return [{"location": r.location, "count": int(r.count)} for r in res.all()]


async def list_listings(
    db: AsyncSession,
    filters: dict = None,
    page: int = 1,
    per_page: int = 20,
) -> Tuple[List[Listing], int]:
    """
    Public listing: ALWAYS only approved listings.
    """
    filters = filters or {}
    where_clauses = _public_clauses()

    if filters.get("location"):
        where_clauses.append(Listing.location == filters["location"])
    if filters.get("min_price") is not None:
        where_clauses.append(Listing.price_per_day >= float(filters["min_price"]))
    if filters.get("max_price") is not None:
        where_clauses.append(Listing.price_per_day <= float(filters["max_price"]))
    if filters.get("vehicle_type"):
        where_clauses.append(Listing.vehicle_type == filters["vehicle_type"])
    if filters.get("transmission"):
        where_clauses.append(Listing.transmission == filters["transmission"])

    stmt = select(Listing).where(and_(*where_clauses))

    sort = filters.get("sort")
    if sort == "price_asc":
        stmt = stmt.order_by(Listing.price_per_day.asc())
    elif sort == "price_desc":
        stmt = stmt.order_by(Listing.price_per_day.desc())
    else:
        # default: recent first
        stmt = stmt.order_by(Listing.id.desc())

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    stmt = stmt.offset((page - 1) * per_page).limit(per_page)
    res = await db.execute(stmt)
    return list(res.scalars().all()), int(total)


async def get_listing(db: AsyncSession, listing_id: int) -> Optional[Listing]:
    res = await db.execute(select(Listing).where(Listing.id == listing_id))
    return res.scalars().first()


async def get_listing_with_host(db: AsyncSession, listing_id: int) -> Optional[Listing]:
    # eager-load host; lazy loading raises MissingGreenlet under asyncio
    res = await db.execute(
        select(Listing)
        .options(selectinload(Listing.host))
        .where(Listing.id == listing_id)
        .execution_options(populate_existing=True)
    )
    return res.scalars().first()


async def list_listings_for_host(db: AsyncSession, host_id: int) -> List[Listing]:
    """
    Host dashboard: ALL their listings, whatever the status.
    """
    res = await db.execute(
        select(Listing)
        .where(Listing.host_id == host_id)
        .order_by(Listing.id.desc())
    )
    return list(res.scalars().all())


async def create_listing(db: AsyncSession, *, submit: bool = True, **kwargs) -> Listing:
    """
    New listings start as 'pending' (submitted for review) or 'draft'.
    Approval always comes later, through the workflow executor.
    """
    kwargs["status"] = ListingStatus.PENDING.value if submit else ListingStatus.DRAFT.value
    kwargs["approval_status"] = ListingApprovalStatus.PENDING.value
    listing = Listing(**kwargs)
    db.add(listing)
    await db.commit()
    await db.refresh(listing)
    return listing


async def update_listing(db: AsyncSession, listing: Listing, data: dict) -> Listing:
    for k, v in data.items():
        if v is not None and k in EDITABLE_FIELDS:
            setattr(listing, k, v)
    await db.commit()
    await db.refresh(listing)
    return listing


# --- ADMIN: listings with uploader (host) ---

async def list_all_listings_with_host(db: AsyncSession, status: Optional[str] = None) -> List[Listing]:
    """
    Admin full list (any status unless filtered), with host loaded.
    """
    stmt = select(Listing).options(selectinload(Listing.host))
    if status:
        stmt = stmt.where(Listing.status == status)
    res = await db.execute(stmt.order_by(Listing.id.desc()))
    return list(res.scalars().all())


async def list_pending_listings_with_host(db: AsyncSession) -> List[Listing]:
    """
    Admin review queue: oldest submissions first.
    """
    stmt = (
        select(Listing)
        .options(selectinload(Listing.host))
        .where(Listing.status == ListingStatus.PENDING.value)
        .order_by(Listing.id.asc())
    )
    res = await db.execute(stmt)
    return list(res.scalars().all())
