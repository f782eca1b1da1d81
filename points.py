import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

DEFAULT_BASE_POINTS = 2

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
STATUS_ALUMNI = "alumni"

# "4-10" or "21+"
_BUCKET_KEY = re.compile(r"^\s*(\d+)\s*(?:-\s*(\d+)|\+)\s*$")


class ConfigError(Exception):
    pass


# =========================
# Members
# =========================
@dataclass(frozen=True)
class Participant:
    handle: str
    status: str = STATUS_ACTIVE

    @property
    def eligible(self) -> bool:
        return self.status != STATUS_ALUMNI


def parse_members(data: Dict[str, Any]) -> List[Participant]:
    members = data.get("members") if isinstance(data, dict) else None
    if not isinstance(members, list):
        raise ConfigError("members.json must contain a 'members' list")

    out = []
    for m in members:
        handle = m.get("github") if isinstance(m, dict) else None
        if not isinstance(handle, str) or not handle.strip():
            raise ConfigError(f"Member entry without a github handle: {m!r}")
        status = str(m.get("status") or STATUS_ACTIVE).strip().lower()
        out.append(Participant(handle=handle.strip().lower(), status=status))
    return out


def eligible_handles(participants: List[Participant]) -> Tuple[str, ...]:
    return tuple(p.handle for p in participants if p.eligible)


# =========================
# Points policy
# =========================
@dataclass(frozen=True)
class MultiplierBucket:
    lower: int
    upper: Optional[int]
    multiplier: float

    def contains(self, count: int) -> bool:
        if count < self.lower:
            return False
        return self.upper is None or count <= self.upper


@dataclass(frozen=True)
class PointsPolicy:
    label_points: Dict[str, float] = field(default_factory=dict)
    files_changed: Tuple[MultiplierBucket, ...] = ()
    lines_changed: Tuple[MultiplierBucket, ...] = ()
    manual_overrides: Dict[str, int] = field(default_factory=dict)
    default_points: int = DEFAULT_BASE_POINTS

    def override_for(self, number: int) -> Optional[int]:
        return self.manual_overrides.get(str(number))


def parse_buckets(raw: Any) -> Tuple[MultiplierBucket, ...]:
    """
    Turn {"4-10": 1.2, "21+": 2.0} into buckets sorted by lower bound.
    Keys or values that don't parse are dropped, so the range they
    would have covered simply never matches.
    """
    if not isinstance(raw, dict):
        return ()

    buckets = []
    for key, value in raw.items():
        m = _BUCKET_KEY.match(str(key))
        if not m:
            continue
        if not _is_number(value):
            continue
        lower = int(m.group(1))
        upper = int(m.group(2)) if m.group(2) is not None else None
        if upper is not None and upper < lower:
            continue
        buckets.append(MultiplierBucket(lower=lower, upper=upper, multiplier=float(value)))

    buckets.sort(key=lambda b: b.lower)
    return tuple(buckets)


def _is_number(value: Any) -> bool:
    return not isinstance(value, bool) and isinstance(value, (int, float))


def _non_negative_int(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"{what} must be a non-negative integer, got {value!r}")
    return value


def parse_points(data: Dict[str, Any]) -> PointsPolicy:
    if not isinstance(data, dict):
        raise ConfigError("points.json must contain an object")

    raw_labels = data.get("labelPoints") or {}
    if not isinstance(raw_labels, dict):
        raw_labels = {}

    # a label with an unusable value just never matches
    label_points: Dict[str, float] = {}
    for label, value in raw_labels.items():
        if _is_number(value) and value >= 0:
            label_points[str(label).lower()] = value

    multipliers = data.get("multipliers") or {}
    if not isinstance(multipliers, dict):
        multipliers = {}

    raw_overrides = data.get("manualOverrides") or {}
    if not isinstance(raw_overrides, dict):
        raise ConfigError("manualOverrides must be an object")

    overrides: Dict[str, int] = {}
    for number, value in raw_overrides.items():
        overrides[str(number).strip()] = _non_negative_int(value, f"manualOverrides[{number!r}]")

    return PointsPolicy(
        label_points=label_points,
        files_changed=parse_buckets(multipliers.get("filesChanged")),
        lines_changed=parse_buckets(multipliers.get("linesChanged")),
        manual_overrides=overrides,
    )


# =========================
# Loading
# =========================
def _read_json(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc


def load_members(path: Path) -> List[Participant]:
    return parse_members(_read_json(path))


def load_points(path: Path) -> PointsPolicy:
    return parse_points(_read_json(path))
