# ridesharex/api/routers/listings.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from ridesharex.db.session import get_db
from ridesharex.db import crud_listings
from ridesharex.schemas.listing import ListingBase, ListingDetail, ListingsPage

router = APIRouter()


@router.get("/locations")
async def get_locations(db: AsyncSession = Depends(get_db)):
    # plain array [{location, count}], approved listings only
    return await crud_listings.list_locations(db)


@router.get("/listings")
async def list_listings(
    db: AsyncSession = Depends(get_db),
    location: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    vehicle_type: Optional[str] = None,
    transmission: Optional[str] = None,
    sort: Optional[str] = None,
):
    """
    Public search – ALWAYS approved listings only.
    """
    filters = {
        "location": location,
        "min_price": min_price,
        "max_price": max_price,
        "vehicle_type": vehicle_type,
        "transmission": transmission,
        "sort": sort,
    }
    items, total = await crud_listings.list_listings(
        db,
        filters=filters,
        page=page,
        per_page=per_page,
    )
    page_obj = ListingsPage(
        items=[ListingBase.model_validate(i) for i in items],
        total=total,
        page=page,
        per_page=per_page,
    )
    return {"success": True, "data": page_obj.model_dump(mode="json")}


@router.get("/listings/{listing_id}")
async def get_listing_detail(listing_id: int, db: AsyncSession = Depends(get_db)):
    """
    Single listing with host. Listings that are not bookable are hidden
    from the public, same as in search.
    """
    listing = await crud_listings.get_listing_with_host(db, listing_id)
    if not listing or not listing.is_bookable:
        raise HTTPException(status_code=404, detail="Not found")

    return {"success": True, "data": ListingDetail.model_validate(listing).model_dump(mode="json")}
