"""Drip release: when does a module become visible to a student.

Availability is derived from the enrollment date plus the module's drip
offset in days. Everything here is pure and safe to call concurrently.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Any
from uuid import UUID

from src.core.logging import get_logger
from src.progress.models import ensure_utc_aware


logger = get_logger(__name__)

AVAILABLE_PREFIX = "Disponivel"

MINUTES_IN_DAY = 1440
MINUTES_IN_MONTH = 43200
MINUTES_IN_TWO_MONTHS = 86400


class GateComputationError(ValueError):
    """Enrollment date missing or unparseable."""


@dataclass(frozen=True)
class DripStatus:
    """Availability of one module for one student."""

    is_available: bool
    available_date: datetime | None = None
    days_until_available: int = 0
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "is_available": self.is_available,
            "available_date": (
                self.available_date.isoformat() if self.available_date else None
            ),
            "days_until_available": self.days_until_available,
            "message": self.message,
        }


ALWAYS_AVAILABLE = DripStatus(is_available=True)
UNKNOWN_ENROLLMENT = DripStatus(is_available=False)


# ==============================================================================
# Date Helpers
# ==============================================================================


def parse_enrollment_date(value: datetime | date | str | None) -> datetime:
    """Normalize an enrollment date to an aware UTC datetime.

    Raises:
        GateComputationError: If the value is missing or malformed
    """
    if value is None:
        raise GateComputationError("enrollment date is missing")

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError as e:
            raise GateComputationError(f"invalid enrollment date: {value!r}") from e
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day, tzinfo=UTC)
    elif not isinstance(value, datetime):
        raise GateComputationError(f"invalid enrollment date: {value!r}")

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _calendar_months(start: datetime, end: datetime) -> int:
    """Whole calendar months from start to end."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    anchor = (end.day, end.time())
    if months > 0 and anchor < (start.day, start.time()):
        months -= 1
    return months


def _round(value: float) -> int:
    """Round half up."""
    return math.floor(value + 0.5)


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural.format(count=count)


def relative_time(target: datetime, now: datetime) -> str:
    """Portuguese distance between two instants with an "em"/"ha" suffix.

    Buckets follow the usual UI wording: less than a minute, minutes, about
    N hours, days, about N months, N months, then years.
    """
    seconds = (target - now).total_seconds()
    future = seconds >= 0
    start, end = (now, target) if future else (target, now)
    minutes = _round(abs(seconds) / 60)

    if minutes < 1:
        text = "menos de um minuto"
    elif minutes < 45:
        text = _plural(minutes, "1 minuto", "{count} minutos")
    elif minutes < 90:
        text = "cerca de 1 hora"
    elif minutes < MINUTES_IN_DAY:
        hours = _round(minutes / 60)
        text = _plural(hours, "cerca de 1 hora", "cerca de {count} horas")
    elif minutes < 2520:
        text = "1 dia"
    elif minutes < MINUTES_IN_MONTH:
        days = _round(minutes / MINUTES_IN_DAY)
        text = _plural(days, "1 dia", "{count} dias")
    elif minutes < MINUTES_IN_TWO_MONTHS:
        months = _round(minutes / MINUTES_IN_MONTH)
        text = _plural(months, "cerca de 1 mes", "cerca de {count} meses")
    else:
        months = _calendar_months(start, end)
        if months < 12:
            nearest = max(_round(minutes / MINUTES_IN_MONTH), 1)
            text = _plural(nearest, "1 mes", "{count} meses")
        else:
            years, remainder = divmod(months, 12)
            if remainder < 3:
                text = _plural(years, "cerca de 1 ano", "cerca de {count} anos")
            elif remainder < 9:
                text = _plural(years, "mais de 1 ano", "mais de {count} anos")
            else:
                text = _plural(years + 1, "quase 1 ano", "quase {count} anos")

    return f"em {text}" if future else f"ha {text}"


# ==============================================================================
# Drip Status
# ==============================================================================


def get_module_drip_status(
    enrollment_date: datetime | date | str | None,
    drip_offset_days: int | None,
    now: datetime | None = None,
) -> DripStatus:
    """Compute availability of a module released ``drip_offset_days`` after enrollment.

    Never raises: a malformed enrollment date degrades to "not available".
    """
    if not drip_offset_days or drip_offset_days < 0:
        return ALWAYS_AVAILABLE

    try:
        enrolled_at = parse_enrollment_date(enrollment_date)
    except GateComputationError as e:
        logger.warning(
            "drip_enrollment_date_invalid",
            drip_offset_days=drip_offset_days,
            error=str(e),
        )
        return UNKNOWN_ENROLLMENT

    current = ensure_utc_aware(now) or datetime.now(UTC)
    try:
        available_date = enrolled_at + timedelta(days=drip_offset_days)
    except OverflowError:
        logger.warning(
            "drip_enrollment_date_invalid",
            drip_offset_days=drip_offset_days,
            error="release date out of range",
        )
        return UNKNOWN_ENROLLMENT

    if current >= available_date:
        return DripStatus(is_available=True, available_date=available_date)

    # Partial days truncate; +1 reads "in a few hours" as 1 day
    delta_days = (available_date - current) / timedelta(days=1)
    days = math.trunc(delta_days) + 1

    return DripStatus(
        is_available=False,
        available_date=available_date,
        days_until_available=days,
        message=f"{AVAILABLE_PREFIX} {relative_time(available_date, current)}",
    )


def check_module_availability(
    modules: Iterable[Any],
    enrollment_date: datetime | date | str | None,
    now: datetime | None = None,
) -> dict[UUID, DripStatus]:
    """Drip status of every module, keyed by module id.

    Modules may be ``CourseModule`` objects or mappings with ``module_id``
    (or ``id``) and ``drip_days``.
    """
    current = now or datetime.now(UTC)
    statuses: dict[UUID, DripStatus] = {}
    for module in modules:
        if isinstance(module, dict):
            module_id = module.get("module_id", module.get("id"))
            drip_days = module.get("drip_days")
        else:
            module_id = module.module_id
            drip_days = module.drip_days
        statuses[module_id] = get_module_drip_status(
            enrollment_date, drip_days, now=current
        )
    return statuses
