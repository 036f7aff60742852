import datetime as dt
import uuid
from typing import List, Optional

from pydantic import computed_field
from sqlalchemy import Column, DateTime
from sqlmodel import SQLModel, Field


class Venue(SQLModel, table=True):
    __tablename__ = "venues"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str


class VenueField(SQLModel, table=True):
    """A playing field. Always belongs to exactly one venue."""

    __tablename__ = "fields"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    venue_id: int = Field(foreign_key="venues.id", index=True)


class OccurrenceBase(SQLModel):
    date: dt.date
    day: str  # "Tuesday"
    start_time: dt.time
    end_time: dt.time
    venue_id: int
    field_id: int
    team_id: Optional[int] = None
    team_name: Optional[str] = None
    notes: Optional[str] = None

    @computed_field
    @property
    def start_datetime(self) -> dt.datetime:
        return dt.datetime.combine(self.date, self.start_time)

    @computed_field
    @property
    def end_datetime(self) -> dt.datetime:
        return dt.datetime.combine(self.date, self.end_time)

    @property
    def scope_key(self):
        # Conflicts only exist inside one (venue, field, date)
        return (self.venue_id, self.field_id, self.date)

    def occurrence_fields(self) -> dict:
        return self.model_dump(include=set(OccurrenceBase.model_fields))


class Practice(OccurrenceBase, table=True):
    """A committed occurrence. Immutable once written."""

    __tablename__ = "practices"

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, primary_key=True)
    date: dt.date = Field(index=True)
    venue_id: int = Field(index=True)
    field_id: int = Field(index=True)
    created_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class ConflictDetail(SQLModel):
    team: str
    type: str = "Field conflict"
    time: str  # "17:00 - 18:30"


class Candidate(OccurrenceBase):
    """A generated occurrence under review. Never persisted as-is."""

    has_conflict: bool = False
    conflict_detail: Optional[ConflictDetail] = None
    skip: bool = False


class SchedulePattern(SQLModel):
    """Recurrence rule entered by the operator. Lives for one request."""

    team_id: int
    team_name: str
    days: List[str]
    start_time: dt.time
    end_time: dt.time
    start_date: dt.date
    end_date: dt.date
    venue_id: int
    field_id: int


class CalendarEvent(SQLModel, table=True):
    """Games, meetings and other events stored next to practices."""

    __tablename__ = "events"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    type: str = "event"  # game, practice, meeting, tournament, event, other
    event_date: dt.date = Field(index=True)
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    team_name: Optional[str] = Field(default=None, index=True)
    venue_id: Optional[int] = None
    location: Optional[str] = None
    description: Optional[str] = None
    status: str = "scheduled"  # scheduled, cancelled, postponed, completed
