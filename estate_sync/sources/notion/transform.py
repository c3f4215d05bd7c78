"""
Listing transformation: one Notion page -> one ListingRecord.

Field names in the listings database have changed over time (Images ->
Media -> gallery, DeveloperLogo -> "Developer Logo", ...); each field is
looked up under every name it has had. Missing values take the documented
defaults below.
"""
import asyncio
import logging
from datetime import datetime
from typing import List, Tuple

from estate_sync.core.schemas import (
    Contact,
    Delivery,
    Developer,
    Dimensions,
    Features,
    ListingRecord,
    Location,
    Media,
    Pricing,
    VirtualTour,
)
from estate_sync.sources.notion.children import (
    fetch_amenities,
    fetch_nearby_locations,
    fetch_scenes,
)
from estate_sync.sources.notion.context import BuildContext
from estate_sync.sources.notion.extractors import (
    RemoteRow,
    extract_boolean,
    extract_files,
    extract_number,
    extract_plain_text,
    extract_select,
    extract_text_value,
    extract_title,
    extract_url,
    first_present,
    slugify,
)
from estate_sync.sources.notion.images import PLACEHOLDER_IMAGE

logger = logging.getLogger(__name__)

DEFAULT_STATUS = "for_sale"
DEFAULT_PROPERTY_TYPE = "departamento"
DEFAULT_DEVELOPER_NAME = "Unknown Developer"
DEFAULT_CITY = "Ciudad de México"
DEFAULT_COUNTRY = "México"
DEFAULT_CURRENCY = "MXN"
DEFAULT_COMMISSION = 3.0
DEFAULT_DELIVERY_TYPE = "entrega inmediata"


def default_slug(page_id: str) -> str:
    return f"property-{page_id}"


def _ordered_range(low: float, high: float) -> Tuple[float, float]:
    low, high = max(0, low), max(0, high)
    if high and high < low:
        low, high = high, low
    return low, max(low, high)


def _plausible_year(value: float) -> int:
    year = int(value)
    if 1000 <= year <= 9999:
        return year
    return datetime.now().year


def _count(value: float) -> int:
    return max(0, int(value))


def resolve_slug(row: RemoteRow) -> str:
    """
    Slugified Slug field, else property-{id}.

    Every image filename and export filename starts with it, so it never
    carries path separators or dots.
    """
    return slugify(extract_plain_text(row.get("Slug"))) or default_slug(row.id)


async def transform_property(ctx: BuildContext, row: RemoteRow) -> ListingRecord:
    """
    Build the full listing for one page.

    Image mirroring and the three child fetchers run concurrently. Any
    exception propagates; the batch fetch substitutes a fallback record.
    """
    slug = resolve_slug(row)
    images = ctx.images

    gallery_urls = extract_files(first_present(row, "gallery", "Gallery", "Images", "Media"))

    (
        hero_refs,
        gallery_refs,
        panorama_refs,
        logo_ref,
        developer_image_ref,
        amenities,
        nearby_locations,
        scenes,
    ) = await asyncio.gather(
        images.mirror_many(
            extract_files(first_present(row, "hero-image", "Hero Image", "HeroImage")),
            slug,
            "hero",
        ),
        images.mirror_many(gallery_urls, slug, "gallery"),
        images.mirror_many(
            extract_files(first_present(row, "ThreeSixtyImages", "360 Images")),
            slug,
            "panorama",
        ),
        images.mirror_first(
            extract_files(first_present(row, "Developer Logo", "DeveloperLogo")),
            slug,
            "developer",
            sub_id="logo",
        ),
        images.mirror_first(
            extract_files(first_present(row, "Developer Image", "DeveloperImage")),
            slug,
            "developer",
            sub_id="image",
        ),
        fetch_amenities(ctx, row.id, slug),
        fetch_nearby_locations(ctx, row.id, slug),
        fetch_scenes(ctx, row.id, slug),
    )

    gallery: List[str] = gallery_refs or [ctx.placeholder]
    hero = hero_refs[0] if hero_refs else gallery[0]

    min_price, max_price = _ordered_range(
        extract_number(first_present(row, "MinPrice", "Price")),
        extract_number(row.get("MaxPrice")),
    )
    min_area, max_area = _ordered_range(
        extract_number(first_present(row, "MinArea", "Area")),
        extract_number(row.get("MaxArea")),
    )

    property_id = extract_text_value(first_present(row, "PropertyId", "Property ID"))

    return ListingRecord(
        id=row.id,
        slug=slug,
        property_id=property_id or None,
        name=extract_title(row),
        property_type=extract_select(row.get("Type")) or DEFAULT_PROPERTY_TYPE,
        status=extract_select(row.get("Status")) or DEFAULT_STATUS,
        description=extract_plain_text(row.get("Description")),
        developer=Developer(
            name=(
                extract_plain_text(first_present(row, "DeveloperName", "Developer Name"))
                or DEFAULT_DEVELOPER_NAME
            ),
            logo_url=logo_ref,
            image_url=developer_image_ref,
            description=extract_plain_text(
                first_present(row, "DeveloperDescription", "Developer Description")
            ),
        ),
        location=Location(
            address=extract_plain_text(row.get("Address")),
            neighborhood=extract_plain_text(row.get("Neighborhood")),
            city=extract_plain_text(row.get("City")) or DEFAULT_CITY,
            country=extract_plain_text(row.get("Country")) or DEFAULT_COUNTRY,
            maps_link=extract_url(first_present(row, "MapsLink", "Maps Link")),
        ),
        pricing=Pricing(
            min_price=min_price,
            max_price=max_price,
            currency=extract_select(row.get("Currency")) or DEFAULT_CURRENCY,
            commission_percentage=(
                max(0, extract_number(row.get("CommissionPercentage"))) or DEFAULT_COMMISSION
            ),
        ),
        dimensions=Dimensions(min_area_m2=min_area, max_area_m2=max_area),
        features=Features(
            bedrooms=_count(extract_number(row.get("Bedrooms"))),
            bathrooms=_count(extract_number(row.get("Bathrooms"))),
            parking_spaces=_count(extract_number(row.get("ParkingSpaces"))),
            is_furnished=extract_boolean(row.get("IsFurnished")),
        ),
        delivery=Delivery(
            type=extract_select(row.get("DeliveryType")) or DEFAULT_DELIVERY_TYPE,
            year_built=_plausible_year(extract_number(row.get("YearBuilt"))),
        ),
        amenities=amenities,
        nearby_locations=nearby_locations,
        media=Media(
            hero_image=hero,
            images=gallery,
            virtual_tour_url=extract_url(row.get("VirtualTourUrl")),
            video_url=extract_url(row.get("VideoUrl")),
            three_sixty_images=panorama_refs,
        ),
        virtual_tour=VirtualTour(enabled=bool(scenes), scenes=scenes),
        contact=Contact(
            agent_name=extract_plain_text(row.get("AgentName")) or "Agent",
            phone=extract_text_value(row.get("AgentPhone")),
            email=extract_text_value(row.get("AgentEmail")),
            website=extract_url(row.get("AgentWebsite")),
        ),
    )


def fallback_record(
    record_id: str = "fallback",
    slug: str = "fallback-property",
    placeholder: str = PLACEHOLDER_IMAGE,
) -> ListingRecord:
    """Stand-in listing used when a page cannot be fetched or transformed."""
    return ListingRecord(
        id=record_id,
        slug=slug,
        name="Fallback Property",
        property_type=DEFAULT_PROPERTY_TYPE,
        status=DEFAULT_STATUS,
        description="Default property description",
        developer=Developer(
            name="Default Developer",
            logo_url=placeholder,
            image_url=placeholder,
            description="Default developer description",
        ),
        location=Location(
            address="Default Address",
            neighborhood="Default Neighborhood",
            city=DEFAULT_CITY,
            country=DEFAULT_COUNTRY,
            maps_link="https://maps.google.com",
        ),
        pricing=Pricing(
            min_price=1000000,
            max_price=1500000,
            currency=DEFAULT_CURRENCY,
            commission_percentage=DEFAULT_COMMISSION,
        ),
        dimensions=Dimensions(min_area_m2=50.0, max_area_m2=100.0),
        features=Features(bedrooms=2, bathrooms=1, parking_spaces=1, is_furnished=False),
        delivery=Delivery(type=DEFAULT_DELIVERY_TYPE, year_built=2024),
        media=Media(
            hero_image=placeholder,
            images=[placeholder],
            virtual_tour_url="",
            video_url="",
        ),
        virtual_tour=VirtualTour(enabled=False, scenes=[]),
        contact=Contact(
            agent_name="Default Agent",
            phone="+52 55 0000 0000",
            email="info@example.com",
            website="",
        ),
        is_fallback=True,
    )
