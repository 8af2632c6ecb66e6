from datetime import datetime

from config import Config
from models import VersionInfo

MAX_VERSION_NUMBER = 0xFFFF


def parse_version_number(text: str) -> int:
    """Parse an unsigned 16-bit decimal version component"""
    if not (text.isascii() and text.isdigit()):
        raise ValueError(f"'{text}' is not an unsigned integer")
    value = int(text, 10)
    if value > MAX_VERSION_NUMBER:
        raise ValueError(f"'{text}' is out of range")
    return value


def parse_rfc3339(text: str) -> datetime:
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        raise ValueError(f"'{text}' has no UTC offset")
    return parsed


def make_version_info(major: str, minor: str, patch: str, commit: str, build_date: str) -> VersionInfo:
    """Build VersionInfo from its string components.

    Raises:
        ValueError: naming the first component that fails to parse
    """
    parsed = {}
    for name, text in (('major', major), ('minor', minor), ('patch', patch)):
        try:
            parsed[name] = parse_version_number(text)
        except ValueError as e:
            raise ValueError(f"invalid {name} version: {e}") from e
    try:
        build_date_parsed = parse_rfc3339(build_date)
    except ValueError as e:
        raise ValueError(f"invalid build date: {e}") from e
    return VersionInfo(
        major=parsed['major'],
        minor=parsed['minor'],
        patch=parsed['patch'],
        commit=commit,
        build_date=build_date_parsed,
    )


def read_version_info(config=Config) -> VersionInfo:
    return make_version_info(
        config.VERSION_MAJOR,
        config.VERSION_MINOR,
        config.VERSION_PATCH,
        config.VERSION_COMMIT,
        config.VERSION_BUILD_DATE,
    )
