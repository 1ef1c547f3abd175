import asyncio
import os
from datetime import datetime, timedelta
from typing import List

from dotenv import load_dotenv

from app.internal.log import is_debug
from app.internal.timeaddr import utc_now_iso
from app.models.booking import BookingCRUD
from app.services.bookings import expire_booking_hold
from app.services.database import get_database, run_in_transaction

load_dotenv()
HOLD_SWEEPER_ENABLED = os.getenv("HOLD_SWEEPER_ENABLED", "true") == "true"
HOLD_SWEEPER_INTERVAL = os.getenv("HOLD_SWEEPER_INTERVAL", "60000")  # Default: 60 seconds
HOLD_SWEEPER_BATCH_SIZE = int(os.getenv("HOLD_SWEEPER_BATCH_SIZE", "10"))  # Default: 10


class HoldSweeper:
    """Background sweeper releasing seats of pending bookings whose hold ran out"""

    def __init__(self, db=None):
        self.is_running = False
        self._task: asyncio.Task = None
        self._db = db

    async def get_db(self):
        if self._db is None:
            self._db = await get_database()
        return self._db

    async def expire_hold(self, id: str, now_iso: str) -> bool:
        """
        Expire a single booking hold

        Args:
            id: Booking ID
            now_iso: Sweep time, holds expiring before it are released

        Returns:
            True if the booking was expired by this call
        """
        db = await self.get_db()

        async def callback(session):
            return await expire_booking_hold(db, id, now_iso=now_iso, session=session)

        return await run_in_transaction(callback)

    async def fetch_and_expire_holds(self) -> List[str]:
        """
        Fetch expired holds and release them

        Returns:
            List of expired booking IDs
        """
        db = await self.get_db()
        now_iso = utc_now_iso()

        ids = await BookingCRUD(db).get_expired_holds(
            now_iso, limit=HOLD_SWEEPER_BATCH_SIZE
        )

        if not ids:
            if is_debug():
                next_time = datetime.now() + timedelta(
                    milliseconds=int(HOLD_SWEEPER_INTERVAL)
                )
                print(
                    f"⏳ No expired hold, next check will be {next_time.strftime('%H:%M:%S')}"
                )
            return []

        results = await asyncio.gather(
            *[self.expire_hold(id, now_iso) for id in ids], return_exceptions=True
        )

        expired_ids = []
        for id, result in zip(ids, results):
            if isinstance(result, Exception):
                print(f"❌ Expiring hold of booking {id} failed: {result}")
            elif result:
                print(f"✅ Hold of booking {id} expired, seats released")
                expired_ids.append(id)

        return expired_ids

    async def run_sweeper_loop(self):
        """Run the main sweeper loop"""
        print("⚙️  Hold sweeper start...")
        self.is_running = True

        while self.is_running:
            try:
                await self.fetch_and_expire_holds()
            except Exception as e:
                print(f"❌ Error in hold sweeper loop: {e}")

            await asyncio.sleep(int(HOLD_SWEEPER_INTERVAL) / 1000)  # Convert ms to seconds

    def start(self):
        """Start the sweeper in the background"""
        if not self.is_running:
            self._task = asyncio.create_task(self.run_sweeper_loop())

    async def stop(self):
        """Stop the sweeper"""
        self.is_running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass


# Global sweeper instance
_sweeper: HoldSweeper = None


def start_hold_sweeper():
    """Start the global hold sweeper"""
    global _sweeper
    if not HOLD_SWEEPER_ENABLED:
        print("⏸️  Hold sweeper disabled")
        return
    if _sweeper is None:
        _sweeper = HoldSweeper()
        _sweeper.start()


async def stop_hold_sweeper():
    """Stop the global hold sweeper"""
    global _sweeper
    if _sweeper:
        await _sweeper.stop()
        _sweeper = None
