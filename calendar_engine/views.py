"""Compose day, week and month layouts from a flat event collection."""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from calendar_engine.event_processor import format_event_time
from calendar_engine.models import CalendarView, Event, PositionedEvent, ViewSettings
from calendar_engine.packer import calculate_event_columns
from calendar_engine.recurrence import expand_events
from calendar_engine.selector import events_for_day, events_in_range, split_all_day
from calendar_engine.timeutils import (
    InstantLike,
    end_of_day,
    month_weeks,
    parse_day,
    slots_for_window,
    start_of_day,
    to_local,
    vertical_offset,
    week_days,
)

logger = logging.getLogger(__name__)

MIN_BLOCK_HEIGHT = 20
COLUMN_WIDTH_PERCENT = 90


@dataclass(frozen=True)
class GridGeometry:
    """Vertical geometry of the time grid."""
    start_hour: int
    end_hour: int
    slot_minutes: int
    hour_height: float
    slot_labels: Tuple[str, ...]

    @property
    def slot_count(self) -> int:
        return len(self.slot_labels)

    @property
    def slot_height(self) -> float:
        return self.hour_height * self.slot_minutes / 60

    @property
    def container_height(self) -> float:
        return (self.end_hour - self.start_hour) * self.hour_height

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start_hour': self.start_hour,
            'end_hour': self.end_hour,
            'slot_minutes': self.slot_minutes,
            'slot_labels': list(self.slot_labels),
            'slot_count': self.slot_count,
            'slot_height': self.slot_height,
            'hour_height': self.hour_height,
            'container_height': self.container_height,
        }


@dataclass(frozen=True)
class DayColumn:
    """One day of a day or week view."""
    date: date
    all_day: Tuple[Event, ...]
    timed: Tuple[PositionedEvent, ...]


@dataclass(frozen=True)
class MonthCell:
    """One day cell of the month grid."""
    date: date
    in_month: bool
    events: Tuple[Event, ...]
    hidden_count: int


@dataclass(frozen=True)
class ViewLayout:
    """Render-ready result of composing a view."""
    mode: CalendarView
    anchor: date
    range_start: datetime
    range_end: datetime
    geometry: GridGeometry
    days: Tuple[DayColumn, ...] = ()
    weeks: Tuple[Tuple[MonthCell, ...], ...] = ()
    tz: Optional[tzinfo] = None
    use_24h: bool = False

    def _event_entry(self, event: Event) -> Dict[str, Any]:
        return dict(event.to_dict(), time_label=format_event_time(event, self.use_24h, self.tz))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON responses, including block placement."""
        return {
            'mode': self.mode.value,
            'anchor': self.anchor.isoformat(),
            'range_start': self.range_start.isoformat(),
            'range_end': self.range_end.isoformat(),
            'geometry': self.geometry.to_dict(),
            'days': [
                {
                    'date': column.date.isoformat(),
                    'all_day': [self._event_entry(event) for event in column.all_day],
                    'timed': [
                        dict(
                            positioned.to_dict(),
                            time_label=format_event_time(
                                positioned.event, self.use_24h, self.tz
                            ),
                            block=block_geometry(
                                positioned, self.geometry, column.date, self.tz
                            ),
                        )
                        for positioned in column.timed
                    ],
                }
                for column in self.days
            ],
            'weeks': [
                [
                    {
                        'date': cell.date.isoformat(),
                        'in_month': cell.in_month,
                        'events': [self._event_entry(event) for event in cell.events],
                        'hidden_count': cell.hidden_count,
                    }
                    for cell in week
                ]
                for week in self.weeks
            ],
        }


def grid_geometry(settings: ViewSettings) -> GridGeometry:
    labels = slots_for_window(settings.start_hour, settings.end_hour, settings.slot_minutes)
    return GridGeometry(
        start_hour=settings.start_hour,
        end_hour=settings.end_hour,
        slot_minutes=settings.slot_minutes,
        hour_height=settings.hour_height,
        slot_labels=tuple(labels),
    )


def block_geometry(
    positioned: PositionedEvent,
    geometry: GridGeometry,
    day: date,
    tz: Optional[tzinfo] = None
) -> Dict[str, float]:
    """
    Pixel and percentage box of a packed event inside a day column.

    Events that start before or end after the day are clipped to it.

    Args:
        positioned: Packed event
        geometry: Grid geometry of the view
        day: Date of the column the block is drawn in
        tz: Timezone of the grid

    Returns:
        Dict with top and height in pixels, left and width in percent
    """
    height = geometry.container_height
    start = to_local(positioned.start, tz)
    end = to_local(positioned.end, tz)

    if start.date() < day:
        top = 0.0
    else:
        top = vertical_offset(start, height, geometry.start_hour, geometry.end_hour)
    if end.date() > day:
        bottom = height
    else:
        bottom = vertical_offset(end, height, geometry.start_hour, geometry.end_hour)

    top = min(max(top, 0.0), height)
    bottom = min(max(bottom, top), height)
    width = COLUMN_WIDTH_PERCENT / positioned.max_columns

    return {
        'top': top,
        'height': max(bottom - top, MIN_BLOCK_HEIGHT),
        'left': positioned.column * width,
        'width': width,
        'z_index': 10 + positioned.column,
    }


def view_dates(mode: CalendarView, anchor: date, week_starts_on: int = 1) -> List[date]:
    """Every date shown by a view, in display order."""
    if mode is CalendarView.DAY:
        return [anchor]
    if mode is CalendarView.WEEK:
        return week_days(anchor, week_starts_on)
    return [day for week in month_weeks(anchor, week_starts_on) for day in week]


def _expand_for_window(
    events: Sequence[Event],
    window_start: datetime,
    window_end: datetime
) -> List[Event]:
    # Occurrences starting before the window can still reach into it.
    longest = max(
        (event.duration for event in events if event.is_recurring),
        default=timedelta(0),
    )
    return expand_events(events, window_start - longest, window_end)


def _day_column(day: date, events: Iterable[Event], tz: tzinfo) -> DayColumn:
    all_day, timed = split_all_day(events_for_day(events, day, tz))
    all_day.sort(key=lambda event: event.start)
    return DayColumn(
        date=day,
        all_day=tuple(all_day),
        timed=tuple(calculate_event_columns(timed)),
    )


def _month_cell(
    day: date,
    month: int,
    events: Iterable[Event],
    tz: tzinfo,
    limit: int
) -> MonthCell:
    day_events = sorted(
        events_for_day(events, day, tz),
        key=lambda event: (not event.all_day, event.start),
    )
    return MonthCell(
        date=day,
        in_month=day.month == month,
        events=tuple(day_events[:limit]),
        hidden_count=max(len(day_events) - limit, 0),
    )


def compose_view(
    mode: Union[CalendarView, str],
    anchor: InstantLike,
    events: Iterable[Event],
    settings: Optional[ViewSettings] = None
) -> ViewLayout:
    """
    Build the layout of a day, week or month view.

    Recurring events are expanded over the view window, events
    intersecting each day are selected, all-day events are split off and
    timed events are packed into columns per day.

    Args:
        mode: 'day', 'week' or 'month'
        anchor: Any date inside the period to show
        events: Stored events (recurring ones unexpanded)
        settings: Grid settings; defaults apply when omitted

    Returns:
        ViewLayout
    """
    settings = settings or ViewSettings()
    mode = CalendarView(mode)
    tz = settings.tz
    anchor_day = parse_day(anchor, tz)
    dates = view_dates(mode, anchor_day, settings.week_starts_on)

    range_start = start_of_day(dates[0], tz)
    range_end = end_of_day(dates[-1], tz)
    window_end = start_of_day(dates[-1] + timedelta(days=1), tz)

    events = list(events)
    visible = events_in_range(
        _expand_for_window(events, range_start, window_end),
        range_start,
        range_end,
        tz,
    )
    logger.debug(
        f"Composing {mode.value} view for {anchor_day}: "
        f"{len(visible)} of {len(events)} events visible"
    )

    layout = dict(
        mode=mode,
        anchor=anchor_day,
        range_start=range_start,
        range_end=range_end,
        geometry=grid_geometry(settings),
        tz=tz,
        use_24h=settings.use_24h,
    )
    if mode is CalendarView.MONTH:
        weeks = tuple(
            tuple(dates[i:i + 7]) for i in range(0, len(dates), 7)
        )
        layout['weeks'] = tuple(
            tuple(
                _month_cell(day, anchor_day.month, visible, tz, settings.month_cell_limit)
                for day in week
            )
            for week in weeks
        )
    else:
        layout['days'] = tuple(_day_column(day, visible, tz) for day in dates)

    return ViewLayout(**layout)


def compose_day_view(
    anchor: InstantLike,
    events: Iterable[Event],
    settings: Optional[ViewSettings] = None
) -> ViewLayout:
    return compose_view(CalendarView.DAY, anchor, events, settings)


def compose_week_view(
    anchor: InstantLike,
    events: Iterable[Event],
    settings: Optional[ViewSettings] = None
) -> ViewLayout:
    return compose_view(CalendarView.WEEK, anchor, events, settings)


def compose_month_view(
    anchor: InstantLike,
    events: Iterable[Event],
    settings: Optional[ViewSettings] = None
) -> ViewLayout:
    return compose_view(CalendarView.MONTH, anchor, events, settings)
