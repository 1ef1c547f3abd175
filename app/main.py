import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.routers import bookings, route_instances, shuttles, slots, trip_instances, trips
from app.services.database import close_mongo_connection, connect_to_mongo
from app.services.hold_sweeper import start_hold_sweeper, stop_hold_sweeper

load_dotenv()

PORT = os.getenv("PORT", "8000")
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
).split(",")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await connect_to_mongo()
    # Release seats of bookings nobody confirmed in time
    start_hold_sweeper()
    print(f"🚀 Server is starting on port {PORT}")

    yield

    # Shutdown
    await stop_hold_sweeper()
    await close_mongo_connection()


app = FastAPI(
    title="Shuttle Slot API",
    description="Hotel shuttle slot allocation and per-segment seat capacity",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in CORS_ORIGINS if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(slots.router)
app.include_router(shuttles.router)
app.include_router(trips.router)
app.include_router(trip_instances.router)
app.include_router(route_instances.router)
app.include_router(bookings.router)


@app.get("/api/health")
async def health_check():
    return {"message": "Server is running", "status": "OK"}


@app.get("/")
async def root():
    return {"message": "Welcome to Shuttle Slot API", "docs": "/docs"}
