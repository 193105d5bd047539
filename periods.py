import re
from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")
MIN_YEAR = date.min.year + 1
MAX_YEAR = date.max.year

MONTH_NAMES = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)


@dataclass(frozen=True)
class Month:
    year: int
    month: int

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        return date(self.year, self.month, monthrange(self.year, self.month)[1])

    @property
    def index(self) -> int:
        return self.year * 12 + (self.month - 1)

    @property
    def slug(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def previous(self) -> "Month":
        if self.month == 1:
            return Month(self.year - 1, 12)
        return Month(self.year, self.month - 1)

    @classmethod
    def of(cls, value: date) -> "Month":
        return cls(value.year, value.month)


def parse_month(value: str) -> Month:
    match = MONTH_PATTERN.match(value.strip())
    if not match:
        raise ValueError("Month must use the YYYY-MM format")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError("Month must be between 01 and 12")
    # The previous month must still be a valid date.
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValueError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}")
    return Month(year, month)


def resolve_month(value: Optional[str], *, today: Optional[date] = None) -> Month:
    if value:
        return parse_month(value)
    return Month.of(today or date.today())


def month_range_contains(start: date, end: date, month: Month) -> bool:
    return Month.of(start).index <= month.index <= Month.of(end).index


def normalize_calendar_day(value: Union[str, date, datetime]) -> date:
    # Keep the day as written; an offset in the string must not move it.
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    if not text:
        raise ValueError("Date is required")
    day = re.split(r"[T ]", text, maxsplit=1)[0]
    try:
        return date.fromisoformat(day)
    except ValueError as exc:
        raise ValueError(f"Invalid date: {value}") from exc
