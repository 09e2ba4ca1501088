import datetime
from pydantic import BaseModel, Field
from typing import List, Literal, Optional

ProductCategory = Literal[
    "handicrafts", "homestay", "guide_service", "transport", "restaurant",
    "tour_package", "cultural_experience", "adventure_activity", "other",
]
PriceUnit = Literal["per_item", "per_person", "per_night", "per_hour", "per_day", "per_package"]
DestinationCategory = Literal[
    "historical", "religious", "natural", "adventure",
    "cultural", "wildlife", "archaeological", "eco-tourism",
]


class PriceIn(BaseModel):
    amount: float = Field(ge=0)
    currency: str = "INR"
    unit: PriceUnit = "per_item"


class AvailabilityIn(BaseModel):
    inStock: bool = True
    quantity: int = Field(default=1, ge=0)
    maxQuantity: Optional[int] = Field(default=None, ge=1)
    availableDates: List[datetime.date] = []
    blackoutDates: List[datetime.date] = []


class CancellationPolicyIn(BaseModel):
    allowed: bool = True
    deadline: Optional[int] = Field(default=None, ge=0)  # hours before start
    refundPercentage: Optional[int] = Field(default=None, ge=0, le=100)


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=2000)
    shortDescription: str = Field(min_length=1, max_length=300)
    category: ProductCategory
    subcategory: Optional[str] = None
    destinationId: Optional[str] = None
    price: PriceIn
    availability: AvailabilityIn = AvailabilityIn()
    cancellationPolicy: CancellationPolicyIn = CancellationPolicyIn()
    city: str = ""
    tags: List[str] = []


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=2000)
    shortDescription: Optional[str] = Field(default=None, max_length=300)
    price: Optional[PriceIn] = None
    availability: Optional[AvailabilityIn] = None
    cancellationPolicy: Optional[CancellationPolicyIn] = None
    tags: Optional[List[str]] = None
    isActive: Optional[bool] = None


class ApprovalIn(BaseModel):
    approved: bool = True


class AvailabilityCheckIn(BaseModel):
    date: datetime.date
    quantity: int = Field(default=1, ge=1)


class RatingIn(BaseModel):
    rating: float = Field(ge=1, le=5)


class DestinationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=2000)
    shortDescription: str = Field(min_length=1, max_length=300)
    category: DestinationCategory
    address: str
    city: str
    state: str = "Jharkhand"
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    isFeatured: bool = False


class DestinationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, min_length=10, max_length=2000)
    shortDescription: Optional[str] = Field(default=None, min_length=1, max_length=300)
    category: Optional[DestinationCategory] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    isFeatured: Optional[bool] = None
