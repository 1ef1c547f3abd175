from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.internal.timeaddr import hour_to_iso_time, parse_time_to_hour
from app.models import generate_id


class TripTime(BaseModel):
    """One operating window [start, end) of a trip"""

    id: str = Field(default_factory=generate_id)
    trip_id: str
    start_time: str
    end_time: str
    shuttle_id: Optional[str] = None

    def start_hour(self) -> int:
        return parse_time_to_hour(self.start_time)

    def end_hour(self) -> int:
        return parse_time_to_hour(self.end_time)

    def contains_hour(self, hour: int) -> bool:
        return self.start_hour() <= hour < self.end_hour()


class Route(BaseModel):
    """One segment of a trip itinerary, stop N to stop N+1"""

    id: str = Field(default_factory=generate_id)
    trip_id: str
    start_location_id: str
    end_location_id: str
    charges: float = Field(default=0.0, ge=0)
    order_index: int = Field(..., ge=0)


class Trip(BaseModel):
    id: str = Field(default_factory=generate_id)
    name: str = Field(..., min_length=1, max_length=100)
    hotel_id: str
    trip_time_ids: List[str] = Field(default_factory=list)
    route_ids: List[str] = Field(default_factory=list)


class TripTimeCreate(BaseModel):
    start_time: str
    end_time: str
    shuttle_id: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def canonical_time(cls, value: str) -> str:
        # stored in the same form as slot boundaries
        return hour_to_iso_time(parse_time_to_hour(value))


class RouteCreate(BaseModel):
    start_location_id: str
    end_location_id: str
    charges: float = Field(default=0.0, ge=0)


class TripCRUD:
    def __init__(self, database):
        self.collection = database["trips"]
        self.trip_times = database["trip_times"]
        self.routes = database["routes"]

    async def create_trip(self, trip: Trip, session=None) -> Trip:
        """Create a new trip"""
        await self.collection.insert_one(trip.model_dump(mode="json"), session=session)
        return trip

    async def get_trip(self, id: str, session=None) -> Optional[Trip]:
        """Get a trip by ID"""
        trip_dict = await self.collection.find_one({"id": id}, session=session)
        if trip_dict:
            return Trip(**trip_dict)
        return None

    async def add_trip_time(
        self, trip_id: str, trip_time: TripTimeCreate, session=None
    ) -> Optional[TripTime]:
        """Add an operating window to a trip"""
        trip = await self.get_trip(trip_id, session=session)
        if not trip:
            return None

        if parse_time_to_hour(trip_time.end_time) <= parse_time_to_hour(
            trip_time.start_time
        ):
            raise ValueError("Trip time must end after it starts")

        created = TripTime(trip_id=trip_id, **trip_time.model_dump())
        await self.trip_times.insert_one(created.model_dump(mode="json"), session=session)
        await self.collection.update_one(
            {"id": trip_id},
            {"$push": {"trip_time_ids": created.id}},
            session=session,
        )
        return created

    async def get_trip_times(self, trip: Trip, session=None) -> List[TripTime]:
        """Get the operating windows of a trip, in the trip's order"""
        cursor = self.trip_times.find(
            {"id": {"$in": trip.trip_time_ids}}, session=session
        )
        by_id = {}
        async for trip_time_dict in cursor:
            by_id[trip_time_dict["id"]] = TripTime(**trip_time_dict)
        return [by_id[id] for id in trip.trip_time_ids if id in by_id]

    async def add_route(
        self, trip_id: str, route: RouteCreate, session=None
    ) -> Optional[Route]:
        """Append a route segment to the end of a trip itinerary"""
        trip = await self.get_trip(trip_id, session=session)
        if not trip:
            return None

        routes = await self.get_routes(trip_id, session=session)
        if routes and routes[-1].end_location_id != route.start_location_id:
            raise ValueError("Route must start where the previous route ends")

        created = Route(trip_id=trip_id, order_index=len(routes), **route.model_dump())
        await self.routes.insert_one(created.model_dump(mode="json"), session=session)
        await self.collection.update_one(
            {"id": trip_id},
            {"$push": {"route_ids": created.id}},
            session=session,
        )
        return created

    async def get_route(self, id: str, session=None) -> Optional[Route]:
        route_dict = await self.routes.find_one({"id": id}, session=session)
        if route_dict:
            return Route(**route_dict)
        return None

    async def get_routes(self, trip_id: str, session=None) -> List[Route]:
        """Get the route segments of a trip sorted by order index"""
        cursor = self.routes.find({"trip_id": trip_id}, session=session)
        routes = [Route(**route_dict) async for route_dict in cursor]
        return sorted(routes, key=lambda route: route.order_index)
