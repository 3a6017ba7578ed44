"""
Condition evaluators for the rule engine.

Each condition kind maps to one check. A check returns True/False, or None
when the result is indeterminate (unknown kind, unusable value); None is
never negated and makes the rule invalid.
"""

import logging
import re
import subprocess
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from .models import ConditionKind, ConditionSpec
from .sun import SunDataCache

logger = logging.getLogger(__name__)

AT_WINDOW = timedelta(seconds=60)
TWILIGHT_BUFFER = timedelta(minutes=10)
DAY_NAMES = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]

_CLOCK_TIME = re.compile(
    r"^(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?(?::(?P<second>\d{2}))?"
    r"\s*(?:(?P<meridiem>[ap])\.?m\.?)?$",
    re.IGNORECASE,
)
_NAMED_TIMES = {"noon": (12, 0), "midnight": (0, 0)}


def local_now() -> datetime:
    """Current local time (timezone-aware)."""
    return datetime.now().astimezone()


def parse_time_expression(expr: Any, now: datetime) -> datetime:
    """
    Resolve a time of day onto the date of now.

    Supported forms: "22:00", "22:00:30", "7pm", "7:30 am", "noon",
    "midnight" and a bare hour given as an integer.

    Raises:
        ValueError: if the expression is not understood
    """
    if isinstance(expr, bool):
        raise ValueError(f"Not a time expression: {expr!r}")
    if isinstance(expr, int):
        hour, minute, second = expr, 0, 0
    else:
        text = str(expr).strip().lower()
        if text in _NAMED_TIMES:
            hour, minute = _NAMED_TIMES[text]
            second = 0
        else:
            match = _CLOCK_TIME.match(text)
            if not match:
                raise ValueError(f"Not a time expression: {expr!r}")
            hour = int(match.group("hour"))
            minute = int(match.group("minute") or 0)
            second = int(match.group("second") or 0)
            meridiem = match.group("meridiem")
            if meridiem:
                if not 1 <= hour <= 12:
                    raise ValueError(f"Invalid 12-hour time: {expr!r}")
                hour = hour % 12 + (12 if meridiem == "p" else 0)

    if not (0 <= hour < 24 and 0 <= minute < 60 and 0 <= second < 60):
        raise ValueError(f"Time out of range: {expr!r}")
    return now.replace(hour=hour, minute=minute, second=second, microsecond=0)


# =============================================================================
# Host probes
# =============================================================================


class HostProbe(ABC):
    """Checks whether a host is reachable."""

    @abstractmethod
    def is_reachable(self, host: str) -> bool:
        pass


class PingProbe(HostProbe):
    """Sends a single ICMP echo with the system ping command."""

    def __init__(self, timeout: float = 3.0) -> None:
        self._timeout = timeout

    def is_reachable(self, host: str) -> bool:
        wait = str(max(1, int(self._timeout)))
        try:
            result = subprocess.run(
                ["ping", "-c1", "-q", f"-W{wait}", str(host)],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=self._timeout + 1,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.debug(f"Ping to {host} timed out")
            return False
        except OSError as e:
            logger.warning(f"Could not run ping for {host}: {e}")
            return False
        return result.returncode == 0


# =============================================================================
# Evaluator
# =============================================================================


class ConditionEvaluator:
    """
    Evaluates rule conditions against the current time.

    Uses a SunDataCache for dark_at and a HostProbe for found host.
    """

    def __init__(
        self,
        sun_cache: SunDataCache,
        host_probe: HostProbe,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._sun_cache = sun_cache
        self._probe = host_probe
        self._clock = clock
        self._checks: Dict[ConditionKind, Callable[[Any, datetime], Optional[bool]]] = {
            ConditionKind.FROM: self._check_from,
            ConditionKind.UNTIL: self._check_until,
            ConditionKind.AT: self._check_at,
            ConditionKind.FOUND_HOST: self._check_found_host,
            ConditionKind.WEEKDAY: self._check_weekday,
            ConditionKind.DARK_AT: self._check_dark_at,
        }

    @property
    def sun_cache(self) -> SunDataCache:
        return self._sun_cache

    def now(self) -> datetime:
        return self._clock()

    def evaluate(self, spec: ConditionSpec, now: Optional[datetime] = None) -> Optional[bool]:
        """
        Evaluate one condition.

        Args:
            spec: The condition
            now: Current time (defaults to the evaluator's clock)

        Returns:
            True/False (negation applied), or None if indeterminate
        """
        check = self._checks.get(spec.kind)
        if check is None:
            logger.warning(f"Unknown condition type/form {spec.raw_kind!r}")
            return None

        if now is None:
            now = self._clock()

        try:
            result = check(spec.value, now)
        except (ValueError, TypeError) as e:
            logger.warning(f"Cannot evaluate condition {spec}: {e}")
            return None

        if result is None:
            return None
        return not result if spec.negated else result

    def evaluate_all(self, specs: List[ConditionSpec], now: Optional[datetime] = None) -> bool:
        """
        Evaluate all conditions (AND logic).

        An empty list is always true; an indeterminate condition counts as
        false.
        """
        if now is None:
            now = self._clock()
        for spec in specs:
            if self.evaluate(spec, now) is not True:
                logger.debug(f"Condition not met: {spec}")
                return False
        return True

    # =========================================================================
    # Condition Implementations
    # =========================================================================

    def _check_from(self, value: Any, now: datetime) -> bool:
        return now >= parse_time_expression(value, now)

    def _check_until(self, value: Any, now: datetime) -> bool:
        return now <= parse_time_expression(value, now)

    def _check_at(self, value: Any, now: datetime) -> bool:
        start = parse_time_expression(value, now)
        return start <= now < start + AT_WINDOW

    def _check_found_host(self, value: Any, now: datetime) -> bool:
        if not value:
            raise ValueError("no host given")
        return self._probe.is_reachable(str(value))

    def _check_weekday(self, value: Any, now: datetime) -> bool:
        if isinstance(value, str):
            days = re.split(r",\s*", value)
        elif isinstance(value, list):
            days = [str(d) for d in value]
        else:
            raise ValueError(f"expected comma-separated days, got {value!r}")
        wanted = {d.strip().lower()[:3] for d in days if d.strip()}
        return DAY_NAMES[now.weekday()] in wanted

    def _check_dark_at(self, value: Any, now: datetime) -> Optional[bool]:
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise ValueError(f"expected [latitude, longitude], got {value!r}")
        latitude, longitude = float(value[0]), float(value[1])

        sun = self._sun_cache.get(latitude, longitude, now.date())
        if sun is None:
            # Darkness unknown
            return None

        # Twilight counts as dark on both ends of the day: with sunrise 06:00
        # and sunset 20:00, both 05:55 and 20:05 are dark. Do not widen the
        # daylight window to [sunrise - 10min, sunset + 10min].
        light_from = sun.sunrise + TWILIGHT_BUFFER
        light_until = sun.sunset - TWILIGHT_BUFFER
        return not (light_from <= now <= light_until)
