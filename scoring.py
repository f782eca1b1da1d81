import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from points import MultiplierBucket, PointsPolicy

METHOD_MANUAL = "manual"
METHOD_CALCULATED = "calculated"


@dataclass(frozen=True)
class Contribution:
    number: int
    author: str
    labels: Tuple[str, ...]
    merged_at: datetime
    files_changed: int
    additions: int
    deletions: int
    repo: str
    title: str
    url: str

    @property
    def lines_changed(self) -> int:
        return self.additions + self.deletions

    @property
    def repo_name(self) -> str:
        return self.repo.split("/", 1)[-1]


@dataclass(frozen=True)
class LabelMatch:
    label: str
    points: float


@dataclass
class ScoreResult:
    points: int
    method: str
    labels: List[LabelMatch] = field(default_factory=list)
    base_points: Optional[float] = None
    multiplier: Optional[float] = None
    files_changed: Optional[int] = None
    lines_changed: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "points": self.points,
            "method": self.method,
            "labels": [{"label": m.label, "points": m.points} for m in self.labels],
        }
        if self.method == METHOD_CALCULATED:
            out.update(
                {
                    "basePoints": self.base_points,
                    "multiplier": self.multiplier,
                    "filesChanged": self.files_changed,
                    "linesChanged": self.lines_changed,
                }
            )
        return out


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def bucket_multiplier(count: int, buckets: Tuple[MultiplierBucket, ...]) -> float:
    """
    Multiplier of the highest bucket containing count, or 1.0 when none does.
    """
    for bucket in reversed(buckets):
        if bucket.contains(count):
            return bucket.multiplier
    return 1.0


def match_labels(labels: Tuple[str, ...], label_points: Dict[str, float]) -> List[LabelMatch]:
    matches = []
    for label in labels:
        name = label.lower()
        if name in label_points:
            matches.append(LabelMatch(label=name, points=label_points[name]))
    return matches


def score(contribution: Contribution, policy: PointsPolicy) -> ScoreResult:
    override = policy.override_for(contribution.number)
    if override is not None:
        return ScoreResult(points=override, method=METHOD_MANUAL)

    matches = match_labels(contribution.labels, policy.label_points)
    base_points = max(m.points for m in matches) if matches else policy.default_points

    files_changed = contribution.files_changed
    lines_changed = contribution.lines_changed

    # each axis can only raise the multiplier; axes don't compound
    multiplier = max(
        1.0,
        bucket_multiplier(files_changed, policy.files_changed),
        bucket_multiplier(lines_changed, policy.lines_changed),
    )

    return ScoreResult(
        points=max(0, round_half_up(base_points * multiplier)),
        method=METHOD_CALCULATED,
        labels=matches,
        base_points=base_points,
        multiplier=multiplier,
        files_changed=files_changed,
        lines_changed=lines_changed,
    )
