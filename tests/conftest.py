"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from points import MultiplierBucket, PointsPolicy  # noqa: E402
from scoring import Contribution  # noqa: E402


@pytest.fixture
def policy() -> PointsPolicy:
    return PointsPolicy(
        label_points={"bug": 3, "feature": 5},
        files_changed=(
            MultiplierBucket(4, 10, 1.2),
            MultiplierBucket(11, 20, 1.5),
            MultiplierBucket(21, None, 2.0),
        ),
        lines_changed=(
            MultiplierBucket(51, 200, 1.2),
            MultiplierBucket(201, 500, 1.5),
            MultiplierBucket(501, None, 2.0),
        ),
    )


@pytest.fixture
def make_contribution():
    def _make(
        number: int = 1,
        author: str = "alice",
        labels=(),
        merged_at: datetime = datetime(2026, 10, 5, 12, 0, tzinfo=timezone.utc),
        files_changed: int = 1,
        additions: int = 5,
        deletions: int = 0,
        repo: str = "org/repo",
        title: str = "Fix things",
    ) -> Contribution:
        return Contribution(
            number=number,
            author=author,
            labels=tuple(labels),
            merged_at=merged_at,
            files_changed=files_changed,
            additions=additions,
            deletions=deletions,
            repo=repo,
            title=title,
            url=f"https://github.com/{repo}/pull/{number}",
        )

    return _make
