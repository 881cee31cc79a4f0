"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, Field, model_validator

from onelastevent.core.config import get_settings

settings = get_settings()

SortField = Literal["start_datetime", "price", "created_at", "title"]


class EventBase(BaseModel):
    description: Optional[str] = Field(None, max_length=5000)
    location: Optional[str] = Field(None, max_length=500)
    start_datetime: Optional[datetime] = None
    end_datetime: Optional[datetime] = None
    image_url: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def check_time_range(self):
        if self.start_datetime and self.end_datetime and self.end_datetime < self.start_datetime:
            raise ValueError("end_datetime must be after start_datetime")
        return self


class EventCreate(EventBase):
    title: str = Field(..., min_length=3, max_length=255)
    capacity: int = Field(settings.EVENT_DEFAULT_CAPACITY, gt=0, le=100000)
    price: Decimal = Field(Decimal("0"), ge=0, le=Decimal("999999.99"), decimal_places=2)
    currency: str = Field(settings.DEFAULT_CURRENCY, pattern=r"^[A-Z]{3}$")
    tags: list[str] = Field(default_factory=list, max_length=10)
    status: Literal["DRAFT", "PUBLISHED"] = "DRAFT"


class EventUpdate(EventBase):
    title: Optional[str] = Field(None, min_length=3, max_length=255)
    capacity: Optional[int] = Field(None, gt=0, le=100000)
    price: Optional[Decimal] = Field(None, ge=0, le=Decimal("999999.99"), decimal_places=2)
    currency: Optional[str] = Field(None, pattern=r"^[A-Z]{3}$")
    tags: Optional[list[str]] = Field(None, max_length=10)


class EventFilters(BaseModel):
    status: Optional[Literal["DRAFT", "PUBLISHED", "CANCELLED"]] = None
    organizer_id: Optional[int] = None
    search: Optional[str] = Field(None, max_length=200)
    location: Optional[str] = Field(None, max_length=200)
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    sort_by: SortField = "start_datetime"
    sort_order: Literal["asc", "desc"] = "asc"
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)


class EventResponse(BaseModel):
    id: int
    organizer_id: int
    title: str
    description: Optional[str]
    location: Optional[str]
    start_datetime: Optional[datetime]
    end_datetime: Optional[datetime]
    capacity: int
    current_participants: int
    remaining_spots: int
    price: Decimal
    currency: str
    is_free: bool
    status: str
    image_url: Optional[str]
    tags: list[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    cached: bool = False
