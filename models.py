from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
import enum
import threading


# Stress defaults, part of the public contract of /api/memory/stresssession
DEFAULT_STRESS_INTERVAL = 1.0  # seconds
DEFAULT_STRESS_ALLOCATION_SIZE = 32 * 1024 * 1024  # 32 MiB
# Longest wait Event.wait accepts, capped at the int64 nanosecond duration range
MAX_STRESS_INTERVAL = min(threading.TIMEOUT_MAX, (2 ** 63 - 1) / 1e9)  # seconds


def format_timestamp(value: datetime) -> str:
    """RFC 3339 rendering with a trailing Z for UTC timestamps"""
    text = value.isoformat()
    if text.endswith('+00:00'):
        text = text[:-6] + 'Z'
    return text


class InvalidStatusError(ValueError):
    """Raised when a health status string is neither 'up' nor 'down'"""


class HealthStatus(enum.Enum):
    UP = "up"
    DOWN = "down"

    @classmethod
    def parse(cls, text: Optional[str]) -> "HealthStatus":
        value = (text or '').lower()
        for status in cls:
            if status.value == value:
                return status
        raise InvalidStatusError("invalid status")

    def __str__(self):
        return self.value


@dataclass
class InstanceStatus:
    health: HealthStatus = HealthStatus.UP
    readiness: HealthStatus = HealthStatus.UP


@dataclass
class VersionInfo:
    major: int
    minor: int
    patch: int
    commit: str
    build_date: datetime

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'major': self.major,
            'minor': self.minor,
            'patch': self.patch,
            'buildDate': format_timestamp(self.build_date),
        }
        if self.commit:
            result['commit'] = self.commit
        return result


@dataclass
class VirtualMemoryStat:
    """Host RAM figures; available/used/percent are computed by the kernel"""
    total: int
    available: int
    used: int
    used_percent: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'available': self.available,
            'used': self.used,
            'usedPercent': self.used_percent,
        }


@dataclass
class NetAddr:
    network: str
    value: str

    def to_dict(self) -> Dict[str, str]:
        return {'network': self.network, 'value': self.value}


@dataclass
class NetInterface:
    # Positive integer starting at one, zero is never used
    index: int
    mtu: int
    name: str
    addresses: List[NetAddr] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'mtu': self.mtu,
            'name': self.name,
            'addresses': [addr.to_dict() for addr in self.addresses],
        }


@dataclass
class HostnameInfo:
    hostname: str

    def to_dict(self) -> Dict[str, str]:
        return {'hostname': self.hostname}


@dataclass
class StressParameters:
    """User supplied stress settings; zero means 'use the default'"""
    interval: float = 0.0  # seconds between allocations
    allocation_size: int = 0  # bytes per allocation


@dataclass(frozen=True)
class StressSnapshot:
    """Point-in-time copy of a memory stress session"""
    started_at: datetime
    bytes_allocated: int
    finished_at: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'startedAt': format_timestamp(self.started_at),
            'bytesAllocated': self.bytes_allocated,
        }
        if self.finished_at is not None:
            result['finishedAt'] = format_timestamp(self.finished_at)
        if self.error is not None:
            result['error'] = self.error
        return result
