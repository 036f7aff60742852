# Pydantic Schemas for Request/Response
from datetime import date, time
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from models import Candidate, Practice


class VenueCreate(BaseModel):
    name: str


class FieldCreate(BaseModel):
    name: str


class FieldOut(BaseModel):
    id: int
    name: str
    venue_id: int


class VenueOut(BaseModel):
    id: int
    name: str
    fields: List[FieldOut]


class GenerateResponse(BaseModel):
    total: int
    conflict_count: int
    candidates: List[Candidate]


class ReviewOut(BaseModel):
    id: str
    state: str
    team_id: int
    team_name: str
    conflict_count: int
    accepted_count: int
    committed_count: int
    candidates: List[Candidate]


class CandidateUpdate(BaseModel):
    skip: Optional[bool] = None
    notes: Optional[str] = None


class PublishRequest(BaseModel):
    confirm_conflicts: bool = False


class PublishResponse(BaseModel):
    committed: int


class CellIn(BaseModel):
    date: date
    field_id: int
    time: time


class PatternSelect(BaseModel):
    weekday: int = Field(ge=0, le=6)  # Sunday = 0
    time: time
    field_id: int


class AvailabilityPublish(BaseModel):
    team_id: int
    team_name: str
    venue_id: int
    start_date: date
    end_date: date
    cells: List[CellIn] = []
    patterns: List[PatternSelect] = []
    confirm_conflicts: bool = False


class CellOut(BaseModel):
    field_id: int
    time: time
    label: str
    status: str
    booked_by: Optional[str]


class AvailabilityDayOut(BaseModel):
    date: date
    day: str
    cells: List[CellOut]


class AvailabilityOut(BaseModel):
    venue_id: int
    fields: List[FieldOut]
    slots: List[str]
    days: List[AvailabilityDayOut]


class EventCreate(BaseModel):
    name: str
    type: Literal["game", "practice", "meeting", "tournament", "event", "other"] = "event"
    event_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    team_name: Optional[str] = None
    venue_id: Optional[int] = None
    location: Optional[str] = None
    description: Optional[str] = None
    status: Literal["scheduled", "cancelled", "postponed", "completed"] = "scheduled"


class CalendarEntryOut(BaseModel):
    kind: Literal["event", "practice"]
    id: str
    title: str
    start_time: Optional[time]
    end_time: Optional[time]
    team_name: Optional[str]


class CalendarDayOut(BaseModel):
    date: date
    is_current_month: bool
    is_today: bool
    total: int
    overflow: int
    entries: List[CalendarEntryOut]


class AgendaGroupOut(BaseModel):
    month: str
    practices: List[Practice]


class StatsOut(BaseModel):
    total_events: int
    total_practices: int
    this_month: int
    upcoming: int
