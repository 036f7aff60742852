"""
Availability grid for ad-hoc (non-recurring) field bookings.

The grid covers every date of a window, and for each date one cell per
(field, time slot). Cells overlapping a committed practice are booked and
cannot be selected; the rest can be picked one by one or with a
"same weekday and time, every week" pattern select.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, time
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from calendar_math import add_minutes, day_name, day_number, iter_dates
from conflicts import batch_conflicts, index_by_scope, windows_overlap
from errors import ConflictsPresentUnconfirmed, NoSlotsSelected, SlotNotSelectable
from models import OccurrenceBase, Practice, Venue, VenueField
from store import OccurrenceGateway

logger = logging.getLogger(__name__)

CellKey = Tuple[date, int, time]


@dataclass(frozen=True)
class TimeSlot:
    start: time
    minutes: int = 60

    @property
    def end(self) -> time:
        return add_minutes(self.start, self.minutes)

    @property
    def label(self) -> str:
        # 17:00 -> "5:00 PM"
        return f"{self.start:%I:%M %p}".lstrip("0")


def hourly_slots(hours: Iterable[int], minutes: int = 60) -> List[TimeSlot]:
    return [TimeSlot(time(hour), minutes) for hour in hours]


class CellStatus(str, enum.Enum):
    BOOKED = "booked"
    AVAILABLE = "available"
    SELECTED = "selected"


@dataclass
class AvailabilityCell:
    date: date
    field_id: int
    slot: TimeSlot
    booked_by: Optional[str] = None
    booked: bool = False

    @property
    def key(self) -> CellKey:
        return (self.date, self.field_id, self.slot.start)

    @property
    def day(self) -> str:
        return day_name(self.date)


@dataclass
class AvailabilityGrid:
    venue_id: int
    fields: List[VenueField]
    slots: List[TimeSlot]
    days: Dict[date, List[AvailabilityCell]] = field(default_factory=dict)
    selected: Set[CellKey] = field(default_factory=set)

    def __post_init__(self):
        self._cells = {c.key: c for cells in self.days.values() for c in cells}

    def cell(self, key: CellKey) -> AvailabilityCell:
        try:
            return self._cells[key]
        except KeyError:
            raise KeyError(f"No slot {key[2]:%H:%M} on field {key[1]} for {key[0]}") from None

    def status(self, key: CellKey) -> CellStatus:
        if key in self.selected:
            return CellStatus.SELECTED
        if self.cell(key).booked:
            return CellStatus.BOOKED
        return CellStatus.AVAILABLE

    def toggle(self, key: CellKey) -> bool:
        """Flip a cell in or out of the selection; returns True when now selected."""
        cell = self.cell(key)
        if key in self.selected:
            self.selected.discard(key)
            return False
        if cell.booked:
            raise SlotNotSelectable(f"{cell.date} {cell.slot.label} is booked by {cell.booked_by}")
        self.selected.add(key)
        return True

    def select_pattern(self, weekday: int, slot_start: time, field_id: int) -> int:
        """Select the slot on every matching weekday (Sunday = 0). Returns cells added."""
        added = 0
        for day in self.days:
            if day_number(day) != weekday:
                continue
            key = (day, field_id, slot_start)
            cell = self._cells.get(key)
            if cell is None or cell.booked or key in self.selected:
                continue
            self.selected.add(key)
            added += 1
        return added

    def clear_selection(self):
        self.selected.clear()

    def selected_cells(self) -> List[AvailabilityCell]:
        return [self._cells[key] for key in sorted(self.selected)]

    def to_occurrences(self, team_id: int, team_name: str, minutes: int) -> List[Practice]:
        """One fresh committed practice per selected cell, starting at the slot."""
        return [
            Practice(
                date=cell.date,
                day=cell.day,
                start_time=cell.slot.start,
                end_time=add_minutes(cell.slot.start, minutes),
                venue_id=self.venue_id,
                field_id=cell.field_id,
                team_id=team_id,
                team_name=team_name,
            )
            for cell in self.selected_cells()
        ]


def build_availability_grid(
    venue: Venue,
    fields: Sequence[VenueField],
    start: date,
    end: date,
    slots: Sequence[TimeSlot],
    committed: Iterable[OccurrenceBase],
) -> AvailabilityGrid:
    by_scope = index_by_scope(p for p in committed if p.venue_id == venue.id)

    days = {}
    for current in iter_dates(start, end):
        cells = []
        for slot in slots:
            for venue_field in fields:
                booking = next(
                    (
                        p for p in by_scope.get((venue.id, venue_field.id, current), ())
                        if windows_overlap(slot.start, slot.end, p.start_time, p.end_time)
                    ),
                    None,
                )
                cells.append(
                    AvailabilityCell(
                        date=current,
                        field_id=venue_field.id,
                        slot=slot,
                        booked=booking is not None,
                        booked_by=(booking.team_name or "Another team") if booking else None,
                    )
                )
        days[current] = cells

    logger.debug(f"Grid for venue {venue.id}: {len(days)} days x {len(fields)} fields x {len(slots)} slots")
    return AvailabilityGrid(venue_id=venue.id, fields=list(fields), slots=list(slots), days=days)


async def publish_selection(
    grid: AvailabilityGrid,
    gateway: OccurrenceGateway,
    team_id: int,
    team_name: str,
    minutes: int = 90,
    confirm_conflicts: bool = False,
    strict: bool = False,
) -> int:
    if not grid.selected:
        raise NoSlotsSelected()

    batch = grid.to_occurrences(team_id, team_name, minutes)
    if strict and not confirm_conflicts:
        clashing = batch_conflicts(batch)
        if clashing:
            raise ConflictsPresentUnconfirmed(clashing)

    result = await gateway.append_occurrences(batch, allow_conflicts=confirm_conflicts)
    logger.info(f"Scheduled {result.succeeded} practices for {team_name} from the availability grid")
    grid.clear_selection()
    return result.succeeded
