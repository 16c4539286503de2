from sqlalchemy import JSON, CheckConstraint, Column, Date, DateTime, Index, Integer, String, Time

from .db import Base


class BookingRow(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_bookings_window"),
        Index("ix_bookings_resource_date", "resource_id", "booking_date"),
    )

    id = Column(Integer, primary_key=True)
    resource_id = Column(Integer, nullable=True)  # field/room; opaque key

    booking_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    # denormalized window, used by the exclusion constraint in the migration
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False)

    team_ids = Column(JSON, nullable=False, default=list)
    booking_type = Column(String, nullable=False)
    status = Column(String, nullable=False, index=True)  # Planned/Confirmed/Cancelled

    description = Column(String, nullable=False, default="")
    notes = Column(String, nullable=False, default="")
    other_participants = Column(String, nullable=True)
    estimated_attendance = Column(Integer, nullable=True)
