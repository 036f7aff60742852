import logging
import uuid
from contextlib import asynccontextmanager
from datetime import date, timedelta
from typing import Dict, List, Optional

from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession

import config
from availability import build_availability_grid, hourly_slots, publish_selection
from calendar_view import CalendarDay, agenda, calendar_stats, month_view, week_view
from calendar_math import month_grid, week_start
from database import init_db, get_session
from errors import (
    ConflictsPresentUnconfirmed,
    InvalidPattern,
    InvalidTransition,
    NoOccurrencesSelected,
    NoSlotsSelected,
    SchedulingError,
    SlotNotSelectable,
    StoreWriteFailed,
)
from generator import validate_pattern
from models import CalendarEvent, Practice, SchedulePattern, Venue, VenueField
from schemas import (
    AgendaGroupOut,
    AvailabilityDayOut,
    AvailabilityOut,
    AvailabilityPublish,
    CalendarDayOut,
    CalendarEntryOut,
    CandidateUpdate,
    CellOut,
    EventCreate,
    FieldCreate,
    FieldOut,
    GenerateResponse,
    PublishRequest,
    PublishResponse,
    ReviewOut,
    StatsOut,
    VenueCreate,
    VenueOut,
)
from store import SqlOccurrenceStore
from workflow import ReviewWorkflow, generate_occurrences

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SLOTS = hourly_slots(config.GRID_SLOT_HOURS, config.SLOT_LENGTH_MINUTES)

# Open review sessions, keyed by id. Candidates never touch the database.
REVIEWS: Dict[str, ReviewWorkflow] = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    await init_db()
    yield
    logger.info(f"Application shutting down ({len(REVIEWS)} review sessions discarded)")


app = FastAPI(title="Field Scheduling Service", lifespan=lifespan)

ERROR_STATUS = {
    InvalidPattern: 422,
    NoOccurrencesSelected: status.HTTP_400_BAD_REQUEST,
    NoSlotsSelected: status.HTTP_400_BAD_REQUEST,
    ConflictsPresentUnconfirmed: status.HTTP_409_CONFLICT,
    SlotNotSelectable: status.HTTP_409_CONFLICT,
    InvalidTransition: status.HTTP_409_CONFLICT,
    StoreWriteFailed: status.HTTP_502_BAD_GATEWAY,
}


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    content = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, ConflictsPresentUnconfirmed):
        content["conflict_count"] = len(exc.conflicts)
    if isinstance(exc, StoreWriteFailed):
        content["succeeded"] = exc.result.succeeded
        content["failed"] = exc.result.failed
        logger.error(f"{request.url.path}: {exc}")
    else:
        logger.warning(f"{request.url.path}: {type(exc).__name__}: {exc}")
    return JSONResponse(status_code=ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST), content=content)


def get_store(session: AsyncSession = Depends(get_session)) -> SqlOccurrenceStore:
    return SqlOccurrenceStore(session)


def get_review(review_id: str) -> ReviewWorkflow:
    workflow = REVIEWS.get(review_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail="Review session not found")
    return workflow


def review_out(review_id: str, workflow: ReviewWorkflow) -> ReviewOut:
    return ReviewOut(
        id=review_id,
        state=workflow.state.value,
        team_id=workflow.team_id,
        team_name=workflow.team_name,
        conflict_count=workflow.conflict_count,
        accepted_count=len(workflow.accepted),
        committed_count=workflow.committed_count,
        candidates=workflow.candidates,
    )


async def load_venue(session: AsyncSession, venue_id: int):
    venue = await session.get(Venue, venue_id)
    if venue is None:
        raise HTTPException(status_code=404, detail="Venue not found")
    result = await session.execute(
        select(VenueField).where(VenueField.venue_id == venue_id).order_by(VenueField.id)
    )
    return venue, list(result.scalars().all())


async def committed_for(store: SqlOccurrenceStore, pattern: SchedulePattern) -> List[Practice]:
    return await store.list_occurrences(
        venue_id=pattern.venue_id,
        field_id=pattern.field_id,
        start=pattern.start_date,
        end=pattern.end_date,
    )


# --- Venues and fields ---
@app.post("/venues", response_model=VenueOut, status_code=status.HTTP_201_CREATED)
async def create_venue(data: VenueCreate, session: AsyncSession = Depends(get_session)):
    venue = Venue(name=data.name)
    session.add(venue)
    await session.commit()
    await session.refresh(venue)
    return VenueOut(id=venue.id, name=venue.name, fields=[])


@app.get("/venues", response_model=List[VenueOut])
async def list_venues(session: AsyncSession = Depends(get_session)):
    venues = (await session.execute(select(Venue).order_by(Venue.id))).scalars().all()
    fields = (await session.execute(select(VenueField).order_by(VenueField.id))).scalars().all()
    return [
        VenueOut(
            id=v.id,
            name=v.name,
            fields=[FieldOut(id=f.id, name=f.name, venue_id=f.venue_id) for f in fields if f.venue_id == v.id],
        )
        for v in venues
    ]


@app.post("/venues/{venue_id}/fields", response_model=FieldOut, status_code=status.HTTP_201_CREATED)
async def create_field(venue_id: int, data: FieldCreate, session: AsyncSession = Depends(get_session)):
    await load_venue(session, venue_id)
    venue_field = VenueField(name=data.name, venue_id=venue_id)
    session.add(venue_field)
    await session.commit()
    await session.refresh(venue_field)
    return FieldOut(id=venue_field.id, name=venue_field.name, venue_id=venue_field.venue_id)


# --- Recurring schedules ---
@app.post("/schedules/generate", response_model=GenerateResponse)
async def generate_schedule(pattern: SchedulePattern, store: SqlOccurrenceStore = Depends(get_store)):
    validate_pattern(pattern)
    candidates = generate_occurrences(
        pattern, await committed_for(store, pattern), strict=config.STRICT_BATCH_CONFLICTS
    )
    return GenerateResponse(
        total=len(candidates),
        conflict_count=sum(1 for c in candidates if c.has_conflict),
        candidates=candidates,
    )


@app.post("/reviews", response_model=ReviewOut, status_code=status.HTTP_201_CREATED)
async def open_review(pattern: SchedulePattern, store: SqlOccurrenceStore = Depends(get_store)):
    validate_pattern(pattern)
    workflow = ReviewWorkflow(pattern.team_id, pattern.team_name, strict=config.STRICT_BATCH_CONFLICTS)
    workflow.generate(pattern, await committed_for(store, pattern))

    review_id = uuid.uuid4().hex
    REVIEWS[review_id] = workflow
    logger.info(f"Review {review_id} opened for {pattern.team_name}: {len(workflow.candidates)} candidates")
    return review_out(review_id, workflow)


@app.get("/reviews/{review_id}", response_model=ReviewOut)
async def get_review_session(review_id: str):
    return review_out(review_id, get_review(review_id))


@app.post("/reviews/{review_id}/generate", response_model=ReviewOut)
async def regenerate_review(review_id: str, pattern: SchedulePattern, store: SqlOccurrenceStore = Depends(get_store)):
    workflow = get_review(review_id)
    validate_pattern(pattern)
    workflow.generate(pattern, await committed_for(store, pattern))
    return review_out(review_id, workflow)


@app.patch("/reviews/{review_id}/candidates/{index}", response_model=ReviewOut)
async def update_candidate(review_id: str, index: int, data: CandidateUpdate):
    workflow = get_review(review_id)
    try:
        if data.skip is not None:
            workflow.set_skip(index, data.skip)
        if data.notes is not None:
            workflow.annotate(index, data.notes)
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return review_out(review_id, workflow)


@app.post("/reviews/{review_id}/revalidate", response_model=ReviewOut)
async def revalidate_review(review_id: str, store: SqlOccurrenceStore = Depends(get_store)):
    workflow = get_review(review_id)
    if workflow.pattern is not None:
        workflow.revalidate(await committed_for(store, workflow.pattern))
    return review_out(review_id, workflow)


@app.post("/reviews/{review_id}/edit", response_model=ReviewOut)
async def edit_review_pattern(review_id: str):
    workflow = get_review(review_id)
    workflow.edit_pattern()
    return review_out(review_id, workflow)


@app.post("/reviews/{review_id}/publish", response_model=PublishResponse)
async def publish_review(review_id: str, data: PublishRequest, store: SqlOccurrenceStore = Depends(get_store)):
    workflow = get_review(review_id)
    committed = await workflow.publish(store, confirm_conflicts=data.confirm_conflicts)
    # Complete is terminal, nothing more can be done with the session
    REVIEWS.pop(review_id, None)
    logger.info(f"Review {review_id} complete: {committed} practices committed")
    return PublishResponse(committed=committed)


@app.delete("/reviews/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def abandon_review(review_id: str):
    get_review(review_id)
    del REVIEWS[review_id]


@app.get("/practices", response_model=List[Practice])
async def list_practices(
    venue_id: Optional[int] = None,
    field_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    team: Optional[str] = None,
    store: SqlOccurrenceStore = Depends(get_store),
):
    return await store.list_occurrences(venue_id, field_id, start_date, end_date, team)


# --- Availability grid ---
async def load_grid(session: AsyncSession, venue_id: int, start_date: date, end_date: date):
    if end_date < start_date:
        raise HTTPException(status_code=422, detail="end_date must not be before start_date")
    venue, fields = await load_venue(session, venue_id)
    committed = await SqlOccurrenceStore(session).list_occurrences(venue_id=venue_id, start=start_date, end=end_date)
    return build_availability_grid(venue, fields, start_date, end_date, SLOTS, committed), fields


@app.get("/availability", response_model=AvailabilityOut)
async def get_availability(
    venue_id: int,
    start_date: date,
    end_date: date,
    session: AsyncSession = Depends(get_session),
):
    grid, fields = await load_grid(session, venue_id, start_date, end_date)
    return AvailabilityOut(
        venue_id=venue_id,
        fields=[FieldOut(id=f.id, name=f.name, venue_id=f.venue_id) for f in fields],
        slots=[slot.label for slot in SLOTS],
        days=[
            AvailabilityDayOut(
                date=day,
                day=f"{day:%a}",
                cells=[
                    CellOut(
                        field_id=cell.field_id,
                        time=cell.slot.start,
                        label=cell.slot.label,
                        status=grid.status(cell.key).value,
                        booked_by=cell.booked_by,
                    )
                    for cell in cells
                ],
            )
            for day, cells in grid.days.items()
        ],
    )


@app.post("/availability/publish", response_model=PublishResponse)
async def publish_availability(data: AvailabilityPublish, session: AsyncSession = Depends(get_session)):
    grid, _ = await load_grid(session, data.venue_id, data.start_date, data.end_date)
    try:
        for cell in data.cells:
            key = (cell.date, cell.field_id, cell.time)
            if key not in grid.selected:
                grid.toggle(key)
    except KeyError as e:
        raise HTTPException(status_code=422, detail=e.args[0])
    for select_rule in data.patterns:
        grid.select_pattern(select_rule.weekday, select_rule.time, select_rule.field_id)

    committed = await publish_selection(
        grid,
        SqlOccurrenceStore(session),
        data.team_id,
        data.team_name,
        minutes=config.DEFAULT_PRACTICE_MINUTES,
        confirm_conflicts=data.confirm_conflicts,
        strict=config.STRICT_BATCH_CONFLICTS,
    )
    return PublishResponse(committed=committed)


# --- Calendar ---
@app.post("/events", response_model=CalendarEvent, status_code=status.HTTP_201_CREATED)
async def create_event(data: EventCreate, session: AsyncSession = Depends(get_session)):
    event = CalendarEvent(**data.model_dump())
    session.add(event)
    await session.commit()
    await session.refresh(event)
    return event


async def load_calendar(session: AsyncSession, start: Optional[date], end: Optional[date]):
    practices = await SqlOccurrenceStore(session).list_occurrences(start=start, end=end)
    statement = select(CalendarEvent)
    if start is not None:
        statement = statement.where(CalendarEvent.event_date >= start)
    if end is not None:
        statement = statement.where(CalendarEvent.event_date <= end)
    events = (await session.execute(statement)).scalars().all()
    return practices, list(events)


def day_out(day: CalendarDay, cap: int) -> CalendarDayOut:
    entries = []
    for item in day.visible(cap):
        if isinstance(item, CalendarEvent):
            entries.append(CalendarEntryOut(
                kind="event", id=str(item.id), title=item.name,
                start_time=item.start_time, end_time=item.end_time, team_name=item.team_name,
            ))
        else:
            entries.append(CalendarEntryOut(
                kind="practice", id=item.id, title=f"{item.team_name or 'Practice'} practice",
                start_time=item.start_time, end_time=item.end_time, team_name=item.team_name,
            ))
    return CalendarDayOut(
        date=day.date,
        is_current_month=day.is_current_month,
        is_today=day.is_today,
        total=day.total,
        overflow=day.overflow(cap),
        entries=entries,
    )


@app.get("/calendar/month", response_model=List[CalendarDayOut])
async def get_month(year: int, month: int, team: Optional[str] = None, session: AsyncSession = Depends(get_session)):
    if not 1 <= month <= 12:
        raise HTTPException(status_code=422, detail="month must be between 1 and 12")
    first, last = month_grid(year, month)
    practices, events = await load_calendar(session, first, last)
    days = month_view(year, month, practices, events, team=team)
    return [day_out(day, config.CALENDAR_DAY_CAP) for day in days]


@app.get("/calendar/week", response_model=List[CalendarDayOut])
async def get_week(anchor: date, team: Optional[str] = None, session: AsyncSession = Depends(get_session)):
    first = week_start(anchor)
    practices, events = await load_calendar(session, first, first + timedelta(days=6))
    days = week_view(anchor, practices, events, team=team)
    # Week view lists everything for the day
    return [day_out(day, max(day.total, 1)) for day in days]


@app.get("/calendar/agenda", response_model=List[AgendaGroupOut])
async def get_agenda(team: Optional[str] = None, session: AsyncSession = Depends(get_session)):
    practices, _ = await load_calendar(session, date.today(), None)
    return [AgendaGroupOut(month=label, practices=items) for label, items in agenda(practices, team=team)]


@app.get("/calendar/stats", response_model=StatsOut)
async def get_stats(year: int, month: int, team: Optional[str] = None, session: AsyncSession = Depends(get_session)):
    if not 1 <= month <= 12:
        raise HTTPException(status_code=422, detail="month must be between 1 and 12")
    practices, events = await load_calendar(session, None, None)
    return StatsOut(**calendar_stats(practices, events, date(year, month, 1), team=team))


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
