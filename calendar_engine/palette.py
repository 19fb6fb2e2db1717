"""Fixed colour palette for event tags."""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class EventColor:
    name: str
    value: str
    bg: str
    text: str


EVENT_COLORS = (
    EventColor('Blue', '#3B82F6', '#EFF6FF', '#1D4ED8'),
    EventColor('Red', '#EF4444', '#FEF2F2', '#DC2626'),
    EventColor('Green', '#10B981', '#F0FDF4', '#059669'),
    EventColor('Purple', '#8B5CF6', '#FAF5FF', '#7C3AED'),
    EventColor('Orange', '#F97316', '#FFF7ED', '#EA580C'),
    EventColor('Pink', '#EC4899', '#FDF2F8', '#DB2777'),
    EventColor('Teal', '#14B8A6', '#F0FDFA', '#0F766E'),
    EventColor('Yellow', '#EAB308', '#FEFCE8', '#CA8A04'),
)

COLOR_NAMES = frozenset(color.name.lower() for color in EVENT_COLORS)


def get_event_color(name: Optional[str]) -> EventColor:
    """Palette entry for a colour name; unknown or empty names get Blue."""
    wanted = (name or '').lower()
    for color in EVENT_COLORS:
        if color.name.lower() == wanted:
            return color
    return EVENT_COLORS[0]
