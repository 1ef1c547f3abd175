from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.internal.timeaddr import utc_now_iso
from app.models import generate_id
from app.models.status import BookingStatus, CancelledBy, PaymentMethod


class Booking(BaseModel):
    """Booking model representing a seat request on one trip instance"""

    id: str = Field(default_factory=generate_id)
    guest_id: str
    hotel_id: str
    trip_id: str
    trip_instance_id: Optional[str] = None
    scheduled_date: str
    from_route_index: int = Field(default=0, ge=0)
    to_route_index: int = Field(default=0, ge=0)
    seats: int = Field(..., ge=1)
    bags: int = Field(default=0, ge=0)
    total_price: float = Field(default=0.0, ge=0)
    booking_status: BookingStatus = Field(default=BookingStatus.PENDING)
    payment_method: PaymentMethod = Field(default=PaymentMethod.APP)

    # Optional fields
    name: Optional[str] = None
    confirmation_num: Optional[str] = None
    notes: str = ""
    is_park_sleep_fly: bool = False
    hold_expires_at: Optional[str] = None  # ISO, only while PENDING
    verified_at: Optional[str] = None
    verified_by: Optional[str] = None
    cancelled_by: Optional[CancelledBy] = None
    cancellation_reason: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)

    def short(self) -> str:
        """Short string representation for debugging"""
        return f"B-{self.id} {self.seats}s [{self.from_route_index}-{self.to_route_index}] {self.booking_status.value}"


class BookingCRUD:
    def __init__(self, database):
        self.collection = database["bookings"]

    async def create_booking(self, booking: Booking, session=None) -> Booking:
        """Create a new booking"""
        await self.collection.insert_one(booking.model_dump(mode="json"), session=session)
        return booking

    async def get_booking(self, id: str, session=None) -> Optional[Booking]:
        """Get a booking by ID"""
        booking_dict = await self.collection.find_one({"id": id}, session=session)
        if booking_dict:
            return Booking(**booking_dict)
        return None

    async def get_for_trip_instance(
        self, trip_instance_id: str, session=None
    ) -> List[Booking]:
        """Get every booking attached to a trip instance"""
        cursor = self.collection.find(
            {"trip_instance_id": trip_instance_id}, session=session
        )
        return [Booking(**booking_dict) async for booking_dict in cursor]

    async def update_booking(self, id: str, update_data: Dict[str, Any], session=None):
        """Update booking fields"""
        await self.collection.update_one({"id": id}, {"$set": update_data}, session=session)

    async def get_expired_holds(self, now_iso: str, limit: int = 10) -> List[str]:
        """Get ids of PENDING bookings whose seat hold has run out"""
        cursor = self.collection.find(
            {
                "booking_status": BookingStatus.PENDING.value,
                "hold_expires_at": {"$ne": None, "$lt": now_iso},
            },
            limit=limit,
        )
        expired_docs = await cursor.to_list(length=limit)
        return [doc["id"] for doc in expired_docs]
