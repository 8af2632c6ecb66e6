import math
import re
from typing import Any, Mapping

from models import MAX_STRESS_INTERVAL, StressParameters

PARAM_INTERVAL = 'interval'
PARAM_ALLOC_SIZE = 'allocSize'
PARAM_ALLOCATION_SIZE = 'allocationSize'

_DURATION_UNITS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,
    'μs': 1e-6,
    'ms': 1e-3,
    's': 1.0,
    'm': 60.0,
    'h': 3600.0,
}
_NUMBER = r'(?:\d+(?:\.\d*)?|\.\d+)'
_DURATION_PART = re.compile(rf'({_NUMBER})(ns|us|µs|μs|ms|s|m|h)')
_BARE_NUMBER = re.compile(_NUMBER)


def _bounded(seconds: float, original) -> float:
    if not math.isfinite(seconds) or abs(seconds) > MAX_STRESS_INTERVAL:
        raise ValueError(f'invalid duration "{original}"')
    return seconds


def parse_duration(text: str) -> float:
    """Parse a duration such as '25ms', '1m30s' or '-2s' into seconds.

    A bare number is taken as seconds. Values longer than MAX_STRESS_INTERVAL
    are rejected.
    """
    original = text
    text = text.strip()
    sign = 1.0
    if text[:1] in ('+', '-'):
        sign = -1.0 if text[0] == '-' else 1.0
        text = text[1:]
    if not text:
        raise ValueError(f'invalid duration "{original}"')
    if _BARE_NUMBER.fullmatch(text):
        return _bounded(sign * float(text), original)
    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if not match:
            raise ValueError(f'invalid duration "{original}"')
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    return _bounded(sign * total, original)


def _interval_value(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f'invalid duration "{value}"')
    if isinstance(value, (int, float)):
        # JSON bodies may carry NaN, Infinity or integers beyond float range
        try:
            seconds = float(value)
        except OverflowError:
            raise ValueError(f'invalid duration "{value}"') from None
        return _bounded(seconds, value)
    if isinstance(value, str):
        return parse_duration(value)
    raise ValueError(f'invalid duration "{value}"')


def _size_value(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f'invalid allocation size "{value}"')
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip(), 0)
        except ValueError:
            raise ValueError(f'invalid allocation size "{value}"') from None
    raise ValueError(f'invalid allocation size "{value}"')


def parse_stress_parameters(values: Mapping[str, Any]) -> StressParameters:
    """Build StressParameters from request values; missing or empty means default.

    Sign is not checked here, the Stresser rejects negative values.
    """
    params = StressParameters()
    interval = values.get(PARAM_INTERVAL)
    if interval not in (None, ''):
        params.interval = _interval_value(interval)
    size = values.get(PARAM_ALLOC_SIZE)
    if size in (None, ''):
        size = values.get(PARAM_ALLOCATION_SIZE)
    if size not in (None, ''):
        params.allocation_size = _size_value(size)
    return params
