import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from aggregate import ALL_TIME, MONTHLY, Leaderboard, ScoredContribution, recent_activity
from github_pulls import fetch_merged_pulls, parse_tracked_repos, pull_sizes, to_contribution
from points import ConfigError, PointsPolicy, eligible_handles, load_members, load_points
from report import (
    build_snapshot,
    display_time,
    load_pull_sizes,
    month_label,
    render_markdown,
    write_markdown,
    write_snapshot,
)
from scoring import Contribution, score

# =========================
# Config / Tunables
# =========================
# relative to the working directory
CONFIG_DIR = Path(os.environ.get("LEADERBOARD_CONFIG_DIR", "config"))
OUTPUT_DIR = Path(os.environ.get("LEADERBOARD_OUTPUT_DIR", "."))

DEFAULT_TRACKED_REPOS = "stellar-wa/stellar-oss-issues"

ALL_TIME_START = datetime(2020, 1, 1, tzinfo=timezone.utc)
RECENT_ACTIVITY_LIMIT = 10

OUT_MARKDOWN = "LEADERBOARD.md"
OUT_SNAPSHOT = "leaderboard-data.json"


def month_start(now: datetime) -> datetime:
    """
    First instant of the current month on the report's clock, so the
    window and the month named in the heading always agree.
    """
    local = display_time(now)
    return local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def score_all(contributions: Sequence[Contribution], policy: PointsPolicy) -> List[ScoredContribution]:
    return [ScoredContribution(contribution=c, result=score(c, policy)) for c in contributions]


def build_leaderboard(
    monthly: Sequence[ScoredContribution],
    all_time: Sequence[ScoredContribution],
) -> Leaderboard:
    """
    Fold both sweeps into one leaderboard. The sweeps overlap on purpose:
    a PR merged this month lands in both windows.
    """
    board = Leaderboard()
    for sc in monthly:
        c = sc.contribution
        print(f"PR #{c.number} by @{c.author}: {sc.points} points ({sc.result.method})")
        board.record_scored(sc, MONTHLY)
    for sc in all_time:
        board.record_scored(sc, ALL_TIME)
    return board


def collect(
    tracked_repos: Sequence[str],
    whitelist: Sequence[str],
    policy: PointsPolicy,
    since_month: datetime,
    token: Optional[str],
    known_sizes: Optional[Dict[str, Dict[str, int]]] = None,
) -> Tuple[List[ScoredContribution], List[ScoredContribution], Dict[str, Dict[str, int]]]:
    monthly: List[ScoredContribution] = []
    all_time: List[ScoredContribution] = []
    sizes: Dict[str, Dict[str, int]] = {}

    for full_name in tracked_repos:
        pulls = fetch_merged_pulls(full_name, ALL_TIME_START, whitelist, token=token, known_sizes=known_sizes)
        sizes.update(pull_sizes(pulls, full_name))
        contributions = [to_contribution(p, full_name) for p in pulls]
        scored = score_all(contributions, policy)
        all_time.extend(scored)
        monthly.extend(sc for sc in scored if sc.contribution.merged_at >= since_month)

    return monthly, all_time, sizes


def main() -> None:
    token = os.environ.get("GITHUB_TOKEN")
    if not token:
        raise SystemExit("Missing GITHUB_TOKEN env var")

    try:
        participants = load_members(CONFIG_DIR / "members.json")
        policy = load_points(CONFIG_DIR / "points.json")
    except ConfigError as exc:
        raise SystemExit(f"Invalid configuration: {exc}")

    whitelist = eligible_handles(participants)
    tracked_repos = parse_tracked_repos(os.environ.get("TRACKED_REPOS", DEFAULT_TRACKED_REPOS))

    print(f"Tracking {len(whitelist)} builders circle members")
    print(f"Tracking repositories: {', '.join(tracked_repos)}")

    now = datetime.now(timezone.utc)
    print(f"Generating leaderboard for {month_label(now)}...")

    snapshot_path = OUTPUT_DIR / OUT_SNAPSHOT
    known_sizes = load_pull_sizes(snapshot_path)

    monthly, all_time, sizes = collect(tracked_repos, whitelist, policy, month_start(now), token, known_sizes)
    board = build_leaderboard(monthly, all_time)

    ranked_monthly = board.rank(MONTHLY)
    ranked_all_time = board.rank(ALL_TIME)
    recent = recent_activity(all_time, limit=RECENT_ACTIVITY_LIMIT)

    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    markdown_path = OUTPUT_DIR / OUT_MARKDOWN
    write_markdown(
        markdown_path,
        render_markdown(ranked_monthly, ranked_all_time, recent, tracked_repos, now),
    )
    print(f"Leaderboard generated successfully at {markdown_path}")
    print(f"Total contributors this month: {board.active_count(MONTHLY)}")

    write_snapshot(snapshot_path, build_snapshot(ranked_monthly, ranked_all_time, recent, now, sizes))
    print(f"Snapshot written to {snapshot_path}")


if __name__ == "__main__":
    main()
