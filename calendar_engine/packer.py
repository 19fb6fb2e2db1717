"""Column packing for overlapping timed events."""
from datetime import datetime
from typing import Iterable, List, Optional

from calendar_engine.models import Event, PositionedEvent


def calculate_event_columns(events: Iterable[Event]) -> List[PositionedEvent]:
    """
    Assign side-by-side columns to overlapping events.

    Greedy left-to-right colouring: events are stable-sorted by start,
    columns whose event ended at or before the current start are freed,
    and each event takes the lowest free column or opens a new one.
    An overlap cluster ends when every column is free; every event in a
    cluster gets the cluster's final column count as max_columns.

    Args:
        events: Timed events of a single day column

    Returns:
        PositionedEvent list in start order
    """
    ordered = sorted(events, key=lambda event: event.start)

    columns: List[int] = []
    widths: List[int] = [1] * len(ordered)
    column_ends: List[Optional[datetime]] = []
    cluster_start = 0

    for index, event in enumerate(ordered):
        for column, end in enumerate(column_ends):
            if end is not None and end <= event.start:
                column_ends[column] = None

        if column_ends and all(end is None for end in column_ends):
            for member in range(cluster_start, index):
                widths[member] = len(column_ends)
            column_ends = []
            cluster_start = index

        if None in column_ends:
            column = column_ends.index(None)
        else:
            column = len(column_ends)
            column_ends.append(None)
        column_ends[column] = event.end
        columns.append(column)

    for member in range(cluster_start, len(ordered)):
        widths[member] = max(len(column_ends), 1)

    return [
        PositionedEvent(event=event, column=column, max_columns=width)
        for event, column, width in zip(ordered, columns, widths)
    ]
