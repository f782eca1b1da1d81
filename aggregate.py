from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from scoring import Contribution, ScoreResult

MONTHLY = "monthly"
ALL_TIME = "all_time"
WINDOWS = (MONTHLY, ALL_TIME)


@dataclass(frozen=True)
class ContributionDetail:
    pr: int
    repo: str
    points: int
    method: str


@dataclass
class ContributorStanding:
    username: str
    monthly_points: int = 0
    monthly_prs: int = 0
    all_time_points: int = 0
    all_time_prs: int = 0
    contributions: List[ContributionDetail] = field(default_factory=list)

    def points(self, window: str) -> int:
        return self.monthly_points if window == MONTHLY else self.all_time_points

    def prs(self, window: str) -> int:
        return self.monthly_prs if window == MONTHLY else self.all_time_prs

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "monthlyPoints": self.monthly_points,
            "monthlyPRs": self.monthly_prs,
            "allTimePoints": self.all_time_points,
            "allTimePRs": self.all_time_prs,
            "contributions": [
                {"pr": c.pr, "repo": c.repo, "points": c.points, "method": c.method}
                for c in self.contributions
            ],
        }


@dataclass(frozen=True)
class ScoredContribution:
    contribution: Contribution
    result: ScoreResult

    @property
    def points(self) -> int:
        return self.result.points

    def to_dict(self) -> Dict[str, Any]:
        c = self.contribution
        return {
            "number": c.number,
            "title": c.title,
            "html_url": c.url,
            "user": {"login": c.author},
            "merged_at": c.merged_at.isoformat(),
            "labels": [{"name": name} for name in c.labels],
            "changed_files": c.files_changed,
            "additions": c.additions,
            "deletions": c.deletions,
            "points": self.result.points,
            "repo": c.repo_name,
            "repoFull": c.repo,
            "mergedDate": c.merged_at.isoformat(),
            "pointsDetail": self.result.to_dict(),
        }


def _check_window(window: str) -> None:
    if window not in WINDOWS:
        raise ValueError(f"Unknown window {window!r}; expected one of {WINDOWS}")


class Leaderboard:
    """
    Per-contributor running totals for the monthly and all-time windows.

    Standings are kept in the order handles were first recorded, which is
    the order ties keep when ranking.
    """

    def __init__(self) -> None:
        self._standings: Dict[str, ContributorStanding] = {}

    def __len__(self) -> int:
        return len(self._standings)

    def __contains__(self, handle: str) -> bool:
        return handle in self._standings

    def standing(self, handle: str) -> ContributorStanding:
        if handle not in self._standings:
            self._standings[handle] = ContributorStanding(username=handle)
        return self._standings[handle]

    def standings(self) -> List[ContributorStanding]:
        return list(self._standings.values())

    def record_contribution(
        self,
        handle: str,
        window: str,
        points: int,
        repo: str,
        pr_id: int,
        method: str,
    ) -> ContributorStanding:
        _check_window(window)
        s = self.standing(handle)
        if window == MONTHLY:
            s.monthly_points += points
            s.monthly_prs += 1
            s.contributions.append(ContributionDetail(pr=pr_id, repo=repo, points=points, method=method))
        else:
            s.all_time_points += points
            s.all_time_prs += 1
        return s

    def record_scored(self, scored: ScoredContribution, window: str) -> ContributorStanding:
        c = scored.contribution
        return self.record_contribution(
            c.author, window, scored.result.points, c.repo, c.number, scored.result.method
        )

    def rank(self, window: str) -> List[ContributorStanding]:
        _check_window(window)
        # sorted() is stable, so equal totals stay in first-recorded order
        return sorted(self._standings.values(), key=lambda s: s.points(window), reverse=True)

    def active_count(self, window: str) -> int:
        _check_window(window)
        return sum(1 for s in self._standings.values() if s.prs(window) > 0)


def recent_activity(scored: Iterable[ScoredContribution], limit: int = 10) -> List[ScoredContribution]:
    ordered = sorted(scored, key=lambda sc: sc.contribution.merged_at, reverse=True)
    return ordered[: max(0, limit)]
