from typing import Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from validators import MAX_INTEGER, parse_timestamp

class CamelModel(BaseModel):
    """Snake_case attributes, camelCase JSON."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        coerce_numbers_to_str=True,
    )

# ---------- Users ----------

class UserCreate(CamelModel):
    email: str = Field(..., max_length=255)
    password: str
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone_number: str = Field(..., min_length=1, max_length=50)

class UserUpdate(CamelModel):
    password: Optional[str] = None
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone_number: str = Field(..., min_length=1, max_length=50)

class Credentials(CamelModel):
    email: str
    password: str

class UserSummary(CamelModel):
    id: int
    email: str

class UserResponse(UserSummary):
    first_name: str
    last_name: str
    phone_number: str

class AuthResponse(CamelModel):
    user: UserSummary
    token: str

# ---------- Properties ----------

class PropertyBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    price: float = Field(..., gt=0)
    capacity: int = Field(..., gt=0)

class PropertyCreate(PropertyBase):
    pass

class PropertyResponse(PropertyBase):
    id: int

# ---------- Reservations ----------

class ReservationUpdate(CamelModel):
    arrival_time: datetime
    departure_time: datetime

    @field_validator("arrival_time", "departure_time", mode="before")
    @classmethod
    def parse_times(cls, value):
        return parse_timestamp(value)

class ReservationCreate(ReservationUpdate):
    property_id: int = Field(..., gt=0, le=MAX_INTEGER)

class ReservationResponse(CamelModel):
    id: int
    user_id: int
    property_id: int
    arrival_time: datetime
    departure_time: datetime
    created_at: datetime

class MessageResponse(CamelModel):
    message: str
