import os

from shared.database import Base, get_engine, get_session

DATABASE_URL = os.getenv("BOOKING_DB", "sqlite+aiosqlite:///./bookings.db")
ECHO = os.getenv("BOOKING_DB_ECHO", "false").lower() == "true"

# local sqlite has no migrations run against it; create the tables at startup
AUTO_CREATE = os.getenv("BOOKING_DB_AUTO_CREATE", str(DATABASE_URL.startswith("sqlite"))).lower() == "true"

engine = get_engine(DATABASE_URL, echo=ECHO)
SessionLocal = get_session(engine)


async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
