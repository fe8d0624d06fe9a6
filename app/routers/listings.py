"""
Listing API endpoints: posting, public search, editing and image management.
Create and update accept multipart forms so images can be sent with the listing fields.
"""

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import ValidationError as PydanticValidationError
from typing import Any, Dict, List, Optional
from decimal import Decimal
from uuid import UUID

from app.models.listing import Listing, PropertyType
from app.models.user import User
from app.schemas.listing import ListingCreate, ListingUpdate, ImageRemoveRequest, ImageReorderRequest
from app.services.listing import ListingService
from app.utils.dependencies import get_current_user, get_optional_current_user, get_listing_service
from app.utils.exceptions import ValidationError
from app.utils.file_utils import FileValidator
from app.utils.query_engine import ListingFilters, TextMatch, coerce_sort
from app.utils.responses import success_response
from app.utils.validators import parse_enum, parse_string_list_field


router = APIRouter(prefix="/listings", tags=["Listings"])


def _form_errors(error: PydanticValidationError) -> ValidationError:
    """Turn schema errors on form fields into the API's validation error."""
    field_errors = [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in error.errors()
    ]
    return ValidationError("Invalid listing data", field_errors=field_errors)


def _parse_property_types(raw: Optional[str]) -> List[PropertyType]:
    """Comma-separated property types, each checked against the enum."""
    if not raw:
        return []
    return [parse_enum(PropertyType, part, "property_type") for part in raw.split(",") if part.strip()]


def _listing_payload(listing: Listing, is_saved: Optional[bool] = None) -> Dict[str, Any]:
    result = listing.to_dict(include_lister=True, include_price_per_sqft=True)
    if is_saved is not None:
        result["is_saved"] = is_saved
    return result


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create listing",
    description="Post a new listing with at least one image (multipart form)"
)
async def create_listing(
    title: str = Form(...),
    address: str = Form(...),
    city: str = Form(...),
    county: str = Form(...),
    price: Decimal = Form(...),
    bedrooms: int = Form(...),
    bathrooms: float = Form(...),
    property_type: str = Form(...),
    zip_code: Optional[str] = Form(None),
    square_feet: Optional[int] = Form(None),
    listing_url: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    current_user: User = Depends(get_current_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> dict:
    """
    Create a new listing.

    Raises:
        ValidationError: If fields are invalid or no image was sent
        StorageError: If images could not be stored
    """
    try:
        listing_data = ListingCreate(
            title=title,
            address=address,
            city=city,
            county=county,
            zip_code=zip_code,
            price=price,
            bedrooms=bedrooms,
            bathrooms=bathrooms,
            square_feet=square_feet,
            property_type=parse_enum(PropertyType, property_type, "property_type"),
            listing_url=listing_url
        )
    except PydanticValidationError as e:
        raise _form_errors(e)

    uploads = await FileValidator.read_uploads(images)
    listing = await listing_service.create_listing(listing_data, uploads, current_user)
    return success_response(_listing_payload(listing), message="Listing created successfully")


@router.get(
    "/public",
    summary="Search listings",
    description="Active listings with filters, sorting and pagination. Signed-in callers get is_saved flags."
)
async def search_listings(
    city: Optional[str] = Query(None, description="City (case-insensitive, partial match)"),
    county: Optional[str] = Query(None, description="County (case-insensitive, partial match)"),
    property_type: Optional[str] = Query(None, description="One or more property types, comma separated"),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    bedrooms: Optional[int] = Query(None, ge=0, description="Minimum number of bedrooms"),
    min_bathrooms: Optional[float] = Query(None, ge=0),
    sort: Optional[str] = Query(None, description="price_asc, price_desc, newest, oldest or bedrooms_desc"),
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    current_user: Optional[User] = Depends(get_optional_current_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> dict:
    filters = ListingFilters(
        city=city,
        county=county,
        text_match=TextMatch.CONTAINS,
        property_types=_parse_property_types(property_type),
        min_price=min_price,
        max_price=max_price,
        bedrooms=bedrooms,
        min_bathrooms=min_bathrooms
    )
    listings, saved_ids, meta = await listing_service.search_public_listings(
        filters, sort=coerce_sort(sort), page=page, limit=limit, current_user=current_user
    )
    data = [
        _listing_payload(listing, listing.id in saved_ids if current_user else None)
        for listing in listings
    ]
    return success_response(data, pagination=meta)


@router.get(
    "/my",
    summary="My listings",
    description="Listings posted by the current user, newest first"
)
async def get_my_listings(
    is_active: Optional[bool] = Query(None, description="Only active or only inactive listings"),
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> dict:
    listings, meta = await listing_service.get_my_listings(current_user, is_active, page, limit)
    return success_response([_listing_payload(listing) for listing in listings], pagination=meta)


@router.get(
    "/{listing_id}",
    summary="Get listing",
    description="Listing detail. Inactive listings are only visible to their owner and to users who saved or viewed them."
)
async def get_listing(
    listing_id: UUID,
    current_user: Optional[User] = Depends(get_optional_current_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> dict:
    return success_response(await listing_service.get_listing(listing_id, current_user))


@router.put(
    "/{listing_id}",
    summary="Update listing",
    description="Partial update. existing_image_urls lists the current images to keep, in order; new files are appended."
)
async def update_listing(
    listing_id: UUID,
    title: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    county: Optional[str] = Form(None),
    zip_code: Optional[str] = Form(None),
    price: Optional[Decimal] = Form(None),
    bedrooms: Optional[int] = Form(None),
    bathrooms: Optional[float] = Form(None),
    square_feet: Optional[int] = Form(None),
    property_type: Optional[str] = Form(None),
    listing_url: Optional[str] = Form(None),
    is_active: Optional[bool] = Form(None),
    existing_image_urls: Optional[str] = Form(None, description="JSON array of image URLs to keep"),
    images: Optional[List[UploadFile]] = File(None),
    current_user: User = Depends(get_current_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> dict:
    """
    Update a listing owned by the current user.

    Raises:
        ForbiddenError: If the user does not own the listing
        ValidationError: If the listing would be left without images
    """
    sent = {
        "title": title,
        "address": address,
        "city": city,
        "county": county,
        "zip_code": zip_code,
        "price": price,
        "bedrooms": bedrooms,
        "bathrooms": bathrooms,
        "square_feet": square_feet,
        "property_type": parse_enum(PropertyType, property_type, "property_type"),
        "listing_url": listing_url,
        "is_active": is_active,
    }
    try:
        update_data = ListingUpdate(**{key: value for key, value in sent.items() if value is not None})
    except PydanticValidationError as e:
        raise _form_errors(e)

    retained = parse_string_list_field(existing_image_urls, "existing_image_urls")
    uploads = await FileValidator.read_uploads(images)

    listing = await listing_service.update_listing(
        listing_id,
        update_data.model_dump(exclude_unset=True),
        retained,
        uploads,
        current_user
    )
    return success_response(_listing_payload(listing), message="Listing updated successfully")


@router.delete(
    "/{listing_id}",
    summary="Delete listing",
    description="Soft delete: the listing is deactivated and hidden from search"
)
async def delete_listing(
    listing_id: UUID,
    current_user: User = Depends(get_current_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> dict:
    await listing_service.delete_listing(listing_id, current_user)
    return success_response(message="Listing deleted successfully")


@router.post(
    "/{listing_id}/images",
    summary="Add images",
    description="Append images to a listing"
)
async def add_images(
    listing_id: UUID,
    images: Optional[List[UploadFile]] = File(None),
    current_user: User = Depends(get_current_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> dict:
    uploads = await FileValidator.read_uploads(images)
    listing = await listing_service.add_images(listing_id, uploads, current_user)
    return success_response(_listing_payload(listing), message="Images added successfully")


@router.delete(
    "/{listing_id}/images",
    summary="Remove image",
    description="Remove one image by URL; a listing keeps at least one image"
)
async def remove_image(
    listing_id: UUID,
    request_data: ImageRemoveRequest,
    current_user: User = Depends(get_current_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> dict:
    listing = await listing_service.remove_image(listing_id, request_data.image_url, current_user)
    return success_response(_listing_payload(listing), message="Image removed successfully")


@router.put(
    "/{listing_id}/images/reorder",
    summary="Reorder images",
    description="Submit every current image URL in the new order"
)
async def reorder_images(
    listing_id: UUID,
    request_data: ImageReorderRequest,
    current_user: User = Depends(get_current_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> dict:
    listing = await listing_service.reorder_images(listing_id, request_data.image_urls, current_user)
    return success_response(_listing_payload(listing), message="Images reordered successfully")
