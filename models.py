from typing import Optional
from datetime import date
from sqlmodel import SQLModel, Field
from sqlalchemy import UniqueConstraint

class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    __table_args__ = (
        # Database-level protection against booking the same student twice
        UniqueConstraint("booking_date", "hour", "student_name", name="unique_student_slot"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    booking_date: date = Field(index=True)
    hour: str = Field(max_length=2)  # "07", "08", ... "17"
    student_name: str
    permanent: bool = Field(default=False)


class Suspension(SQLModel, table=True):
    __tablename__ = "suspensions"
    __table_args__ = (
        UniqueConstraint("suspension_date", "hour", name="unique_suspended_slot"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    suspension_date: date = Field(index=True)
    hour: str = Field(max_length=2)
