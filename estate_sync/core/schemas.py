"""
Pydantic schemas for listing records.

Records are built once per fetch and never mutated afterwards (frozen
models). Field names are snake_case in Python and camelCase when dumped
with by_alias=True, which is the shape the export writes to disk.
"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class RecordModel(BaseModel):
    """Common config: immutable, camelCase aliases, accepts either name."""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Developer(RecordModel):
    name: str
    logo_url: str
    image_url: Optional[str] = None
    description: str = ""


class Location(RecordModel):
    address: str = ""
    neighborhood: str = ""
    city: str = ""
    country: Optional[str] = None
    maps_link: str = ""


class Pricing(RecordModel):
    """Price range; both bounds non-negative and max >= min."""
    min_price: float = Field(default=0, ge=0)
    max_price: float = Field(default=0, ge=0)
    currency: str = "MXN"
    commission_percentage: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_range(self):
        if self.max_price < self.min_price:
            raise ValueError("max_price must be >= min_price")
        return self


class Dimensions(RecordModel):
    """Area range in square meters; max >= min."""
    min_area_m2: float = Field(default=0, ge=0)
    max_area_m2: float = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_range(self):
        if self.max_area_m2 < self.min_area_m2:
            raise ValueError("max_area_m2 must be >= min_area_m2")
        return self


class Features(RecordModel):
    bedrooms: int = Field(default=0, ge=0)
    bathrooms: int = Field(default=0, ge=0)
    parking_spaces: int = Field(default=0, ge=0)
    is_furnished: bool = False


class Delivery(RecordModel):
    type: str = "entrega inmediata"
    year_built: int = Field(ge=1000, le=9999)


class Contact(RecordModel):
    agent_name: str = "Agent"
    phone: str = ""
    email: str = ""
    website: str = ""


class Amenity(RecordModel):
    title: str
    description: str = ""
    category: str = ""
    image_url: str


class NearbyLocation(RecordModel):
    title: str
    description: str = ""
    category: str = ""
    distance: Optional[str] = None
    image_url: str


class HotSpot(RecordModel):
    """Clickable marker placed on a panorama at (pitch, yaw) degrees."""
    pitch: float
    yaw: float
    type: str = "scene"
    text: str = ""
    scene_id: str = ""


class Scene(RecordModel):
    id: str
    title: str
    panorama_url: str
    thumbnail_url: str
    description: str = ""
    hot_spots: List[HotSpot] = Field(default_factory=list)


class VirtualTour(RecordModel):
    enabled: bool = False
    scenes: List[Scene] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_enabled(self):
        if self.enabled != (len(self.scenes) > 0):
            raise ValueError("enabled must be true iff the tour has scenes")
        return self


class Media(RecordModel):
    hero_image: str
    images: List[str] = Field(min_length=1)
    virtual_tour_url: Optional[str] = None
    video_url: Optional[str] = None
    three_sixty_images: List[str] = Field(default_factory=list)


class ListingRecord(RecordModel):
    """One fully-populated listing, as consumed by pages and exports."""
    id: str
    slug: str
    property_id: Optional[str] = None
    name: str = Field(default="", alias="propertyName")
    property_type: str = "departamento"
    status: str = "for_sale"
    description: str = ""
    developer: Developer
    location: Location
    pricing: Pricing
    dimensions: Dimensions
    features: Features
    delivery: Delivery
    amenities: List[Amenity] = Field(default_factory=list)
    nearby_locations: List[NearbyLocation] = Field(default_factory=list)
    media: Media
    virtual_tour: VirtualTour = Field(default_factory=VirtualTour)
    contact: Contact = Field(default_factory=Contact)
    is_fallback: bool = False
