# labdesk/catalog/schemas.py
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class TestParameter(BaseModel):
    name: str
    unit: Optional[str] = None
    normal_range: Optional[str] = None
    param_code: Optional[str] = None


class TestCreate(BaseModel):
    name: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1, examples=["CBC"])
    category: str = Field(..., min_length=1)
    price: float = Field(..., gt=0)
    duration: str = Field(..., min_length=1, examples=["24 hours"])
    description: Optional[str] = None
    parameters: List[TestParameter]
    image_url: Optional[str] = None


class TestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    code: str
    category: str
    price: float
    duration: str
    description: Optional[str] = None
    parameters: List[TestParameter]
    image_url: Optional[str] = None


# ---- health packages ----

class HealthPackageCreate(BaseModel):
    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    description: Optional[str] = None
    test_ids: List[str] = Field(..., min_length=1)
    report_time: str = Field(..., min_length=1)
    original_price: float = Field(..., gt=0)
    discount_percentage: int = Field(0, ge=0, le=100)
    is_active: bool = True
    image_url: Optional[str] = None
    sort_order: int = 0


class HealthPackageUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    test_ids: Optional[List[str]] = None
    report_time: Optional[str] = None
    original_price: Optional[float] = Field(None, gt=0)
    discount_percentage: Optional[int] = Field(None, ge=0, le=100)
    is_active: Optional[bool] = None
    image_url: Optional[str] = None
    sort_order: Optional[int] = None


class HealthPackageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    category: str
    description: Optional[str] = None
    test_ids: List[str]
    report_time: str
    original_price: float
    discount_percentage: int
    is_active: bool
    image_url: Optional[str] = None
    sort_order: int
    created_at: datetime


class PricedHealthPackage(HealthPackageOut):
    discounted_price: float
    savings: float


class HealthPackageDetail(PricedHealthPackage):
    tests: List[TestOut]


# ---- reviews ----

class ReviewCreate(BaseModel):
    name: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    review: str = Field(..., min_length=1)


class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    location: str
    rating: int
    review: str
    is_approved: bool
    created_at: datetime


# ---- advertisements ----

class AdvertisementCreate(BaseModel):
    title: str = Field(..., min_length=1)
    subtitle: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    gradient: str = Field(..., min_length=1, examples=["from-blue-500 to-cyan-500"])
    icon: str = Field(..., min_length=1)
    image_url: Optional[str] = None
    cta_text: str = Field(..., min_length=1)
    cta_link: str = Field(..., min_length=1)
    is_active: bool = True
    sort_order: int = 0


class AdvertisementUpdate(BaseModel):
    title: Optional[str] = None
    subtitle: Optional[str] = None
    description: Optional[str] = None
    gradient: Optional[str] = None
    icon: Optional[str] = None
    image_url: Optional[str] = None
    cta_text: Optional[str] = None
    cta_link: Optional[str] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class AdvertisementOut(AdvertisementCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime


# ---- lab settings & location ----

class LabSettingsUpdate(BaseModel):
    lab_name: str = Field(..., min_length=1)
    lab_latitude: float = Field(..., ge=-90, le=90)
    lab_longitude: float = Field(..., ge=-180, le=180)
    max_collection_distance: int = Field(40, gt=0)
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class LabSettingsOut(LabSettingsUpdate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    updated_at: datetime


class PublicLabSettings(BaseModel):
    lab_name: str
    latitude: float
    longitude: float
    max_collection_distance: int
    address: Optional[str] = None


class DistanceRequest(BaseModel):
    user_latitude: float = Field(..., ge=-90, le=90)
    user_longitude: float = Field(..., ge=-180, le=180)


class DistanceResult(BaseModel):
    distance: float
    is_within_range: bool
    max_distance: int
    message: str
