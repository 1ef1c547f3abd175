import os
from typing import Any, Awaitable, Callable

from dotenv import load_dotenv
from pymongo import AsyncMongoClient
from pymongo.errors import DuplicateKeyError

load_dotenv()

# MongoDB configuration
MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017/")
DATABASE_NAME = os.getenv("MONGODB_DATABASE_NAME", "shuttle")
# Multi-document transactions need a replica set; standalone dev servers
# can switch them off.
MONGODB_TRANSACTIONS = os.getenv("MONGODB_TRANSACTIONS", "true") == "true"
TRANSACTION_ATTEMPTS = int(os.getenv("TRANSACTION_ATTEMPTS", "3"))


class Database:
    client: AsyncMongoClient = None
    database = None


database = Database()


async def get_database():
    return database.database


async def connect_to_mongo():
    """Create database connection"""

    database.client = AsyncMongoClient(MONGODB_URI)
    database.database = database.client[DATABASE_NAME]

    # Test the connection
    try:
        await database.client.admin.command("ping")
        print("Successfully connected to MongoDB")

        await setup_indexes(database.database)

    except Exception as e:
        print(f"Error connecting to MongoDB: {e}")


async def setup_indexes(db):
    """Setup indexes for the slot and seat collections"""
    try:
        for name in ("trips", "trip_times", "routes", "shuttles", "users", "bookings"):
            await db[name].create_index([("id", 1)], unique=True, background=True)

        await db["routes"].create_index(
            [("trip_id", 1), ("order_index", 1)], unique=True, background=True
        )
        await db["shuttles"].create_index(
            [("hotel_id", 1), ("is_active", 1)], background=True
        )
        await db["bookings"].create_index([("trip_instance_id", 1)], background=True)
        await db["bookings"].create_index(
            [("booking_status", 1), ("hold_expires_at", 1)], background=True
        )

        print("Trip collection indexes created successfully")

        trip_instances = db["trip_instances"]
        await trip_instances.create_index([("id", 1)], unique=True, background=True)

        # One instance per trip, slot and shuttle: concurrent first bookers
        # collide here instead of opening duplicate instances.
        await trip_instances.create_index(
            [
                ("trip_id", 1),
                ("scheduled_date", 1),
                ("scheduled_start_time", 1),
                ("scheduled_end_time", 1),
                ("shuttle_id", 1),
            ],
            unique=True,
            background=True,
        )
        await trip_instances.create_index(
            [("shuttle_id", 1), ("scheduled_date", 1)], background=True
        )

        print("Trip instance collection indexes created successfully")

        route_instances = db["route_instances"]
        await route_instances.create_index([("id", 1)], unique=True, background=True)
        await route_instances.create_index(
            [("trip_instance_id", 1), ("order_index", 1)], unique=True, background=True
        )

        print("Route instance collection indexes created successfully")

    except Exception as e:
        print(f"Error creating indexes: {e}")


async def close_mongo_connection():
    """Close database connection"""
    if database.client:
        await database.client.close()
        print("Disconnected from MongoDB")


async def run_in_transaction(callback: Callable[[Any], Awaitable[Any]]) -> Any:
    """
    Run an operation as one atomic unit against the store

    A unique index violation aborts the transaction. The whole callback is
    then run again, so it reads what the concurrent winner committed.

    Args:
        callback: async function receiving the session (None when transactions are off)

    Returns:
        Whatever the callback returns
    """
    for attempt in range(1, TRANSACTION_ATTEMPTS + 1):
        try:
            return await _run_once(callback)
        except DuplicateKeyError as e:
            if attempt == TRANSACTION_ATTEMPTS:
                raise
            print(f"🔁 Write conflict ({e}), retrying {attempt}/{TRANSACTION_ATTEMPTS - 1}")


async def _run_once(callback: Callable[[Any], Awaitable[Any]]) -> Any:
    if not MONGODB_TRANSACTIONS or database.client is None:
        return await callback(None)

    async with database.client.start_session() as session:
        return await session.with_transaction(callback)
