from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.internal.timeaddr import parse_date
from app.models.status import PaymentMethod


class SlotResult(BaseModel):
    """A concrete one-hour slot on one shuttle"""

    trip_time_id: str
    start_time: str
    end_time: str
    shuttle_id: str
    existing_trip_instance_id: Optional[str] = None


class SlotSearchResult(BaseModel):
    """Outcome of a best-slot search"""

    found: bool
    slot: Optional[SlotResult] = None
    reason: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "found": False,
                "slot": None,
                "reason": "Shuttle full at 13:00-14:00 and no service available at 14:00",
            }
        }
    }


class SlotAvailability(BaseModel):
    """Outcome of checking one slot across shuttles"""

    available: bool
    shuttle_id: Optional[str] = None
    existing_trip_instance_id: Optional[str] = None


class SlotSearchRequest(BaseModel):
    trip_id: str
    hotel_id: str
    scheduled_date: str  # YYYY-MM-DD
    desired_time: str
    required_seats: int = Field(..., ge=1)
    from_route_index: int = Field(default=0, ge=0)
    to_route_index: Optional[int] = Field(default=None, ge=0)

    @field_validator("scheduled_date")
    @classmethod
    def valid_date(cls, value: str) -> str:
        parse_date(value)
        return value


class CompletionResult(BaseModel):
    success: bool
    message: str
    all_routes_completed: bool = False


class UncompletionResult(BaseModel):
    success: bool
    message: str


class SegmentAdvanceResult(BaseModel):
    success: bool
    message: str
    completed_route_index: int
    next_route_index: int
    seats_released: int


class RevertResult(BaseModel):
    success: bool
    message: str
    reverted_route_index: int
    seats_restored: int


class SeatSummary(BaseModel):
    shuttle_capacity: int
    max_seats_occupied: int
    max_seats_held: int
    max_total_used: int
    available_seats: int


class SeatValidationResult(BaseModel):
    valid: bool
    reason: Optional[str] = None
    available_seats: Optional[int] = None


class DriverAction(BaseModel):
    driver_id: str


class EtaUpdate(BaseModel):
    route_instance_id: str
    eta: str


class EtaRequest(BaseModel):
    eta: str


class EtaBatchRequest(BaseModel):
    updates: List[EtaUpdate] = Field(default_factory=list)


class SeatDeltaRequest(BaseModel):
    seat_held_delta: int = 0
    seats_occupied_delta: int = 0


class RangeSeatDeltaRequest(SeatDeltaRequest):
    from_index: int = Field(..., ge=0)
    to_index: int = Field(..., ge=0)


class AvailableShuttleResponse(BaseModel):
    shuttle_id: Optional[str] = None


class CreateBookingRequest(BaseModel):
    guest_id: str
    trip_id: str
    hotel_id: str
    from_location_id: str
    to_location_id: str
    scheduled_date: str
    desired_time: str
    seats: int
    bags: int = 0
    name: Optional[str] = None
    confirmation_num: Optional[str] = None
    notes: str = ""
    is_park_sleep_fly: bool = False
    payment_method: PaymentMethod = PaymentMethod.APP


class AssignedSlot(BaseModel):
    start_time: str
    end_time: str


class CreateBookingResponse(BaseModel):
    booking_id: str
    success: bool
    message: str
    assigned_slot: Optional[AssignedSlot] = None
    total_price: Optional[float] = None


class BookingActionRequest(BaseModel):
    user_id: str
    reason: Optional[str] = None


class ActionResult(BaseModel):
    success: bool
    message: str


class AssignDriverRequest(BaseModel):
    driver_id: Optional[str] = None


class UpcomingStop(BaseModel):
    """A segment still to drive and the stop it ends at"""

    route_instance_id: str
    route_id: str
    order_index: int
    end_location_id: Optional[str] = None
    eta: Optional[str] = None


class ShuttleSeats(BaseModel):
    shuttle_id: str
    vehicle_number: str
    available_seats: int


class SlotCapacity(BaseModel):
    total_available_seats: int
    shuttles: List[ShuttleSeats] = Field(default_factory=list)
