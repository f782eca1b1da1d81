import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from aggregate import ALL_TIME, MONTHLY, ContributorStanding, ScoredContribution

DISPLAY_TIMEZONE = "Africa/Lagos"
DISPLAY_TIMEZONE_ABBR = "WAT"

TOP_N = 10
TITLE_MAX = 50

MEDALS = ["🥇", "🥈", "🥉"]
PRIZE_POOL = 150
PRIZES = [75, 50, 25]
PLACES = ["1st", "2nd", "3rd"]


# every date the report shows (month heading, timestamps) is on this clock
def display_time(dt: datetime, tz_name: str = DISPLAY_TIMEZONE) -> datetime:
    return dt.astimezone(ZoneInfo(tz_name))


def month_label(dt: datetime, tz_name: str = DISPLAY_TIMEZONE) -> str:
    return display_time(dt, tz_name).strftime("%B %Y")


def format_timestamp(dt: datetime, tz_name: str = DISPLAY_TIMEZONE) -> str:
    local = display_time(dt, tz_name)
    hour = local.strftime("%I").lstrip("0")
    return f"{local.strftime('%A, %B')} {local.day}, {local.year} at {hour}:{local.strftime('%M %p')}"


def short_date(dt: datetime) -> str:
    dt = display_time(dt)
    return f"{dt.strftime('%b')} {dt.day}"


def truncate_title(title: str, limit: int = TITLE_MAX) -> str:
    if len(title) <= limit:
        return title
    return title[: limit - 3] + "..."


def profile_link(login: str) -> str:
    return f"[@{login}](https://github.com/{login})"


def _standings_table(standings: Sequence[ContributorStanding], window: str) -> List[str]:
    lines = []
    for index, s in enumerate(standings[:TOP_N]):
        position = index + 1
        if s.prs(window) == 0:
            lines.append(f"| {position} | - | - | - |")
            continue
        rank = f"{MEDALS[index]} {position}" if window == MONTHLY and index < len(MEDALS) else str(position)
        lines.append(f"| {rank} | {profile_link(s.username)} | {s.points(window)} | {s.prs(window)} |")
    return lines


def render_markdown(
    monthly: Sequence[ContributorStanding],
    all_time: Sequence[ContributorStanding],
    recent: Sequence[ScoredContribution],
    tracked_repos: Sequence[str],
    generated_at: datetime,
) -> str:
    md: List[str] = [
        "# Contributor Leaderboard",
        "",
        "Tracking contributions from builders circle members across the tracked repositories.",
        "",
        f"**Last Updated**: {format_timestamp(generated_at)} {DISPLAY_TIMEZONE_ABBR}",
        "",
        f"## Monthly Leaderboard ({month_label(generated_at)})",
        "",
        "| Rank | Contributor | Points | PRs |",
        "|------|-------------|--------|-----|",
    ]
    md += _standings_table(monthly, MONTHLY)

    md += ["", f"**Prize Pool Distribution (${PRIZE_POOL})**"]
    for medal, place, prize in zip(MEDALS, PLACES, PRIZES):
        md.append(f"- {medal} {place} place: ${prize}")

    md += [
        "",
        "## All-Time Leaderboard",
        "",
        "| Rank | Contributor | Total Points | Total PRs |",
        "|------|-------------|--------------|-----------|",
    ]
    md += _standings_table(all_time, ALL_TIME)

    md += [
        "",
        "## Recent Activity",
        "",
        f"Last {TOP_N} merged PRs:",
        "",
        "| Date | Contributor | Repository | Title | Points |",
        "|------|-------------|------------|-------|--------|",
    ]
    for sc in recent:
        c = sc.contribution
        md.append(
            f"| {short_date(c.merged_at)} | {profile_link(c.author)} "
            f"| [{c.repo_name}](https://github.com/{c.repo}) "
            f"| [{truncate_title(c.title)}]({c.url}) | {sc.points} |"
        )
    if not recent:
        md.append("| - | - | - | - | - |")

    md += [
        "",
        "## Point System",
        "",
        "Points are calculated using:",
        "- **Label-based scoring**: Different contribution types earn different base points",
        "- **Size multipliers**: Larger contributions get bonus multipliers",
        "- **Manual overrides**: Team can assign custom points for exceptional work",
        "",
        "See [`config/points.json`](./config/points.json) for full point values.",
        "",
        "## Tracked Repositories",
        "",
    ]
    md += [f"- [{repo}](https://github.com/{repo})" for repo in tracked_repos]

    md += [
        "",
        "## Leaderboard Rules",
        "",
        "- Only whitelisted builders circle members are tracked",
        "- Only merged PRs count toward points",
        "- Points calculated from labels, PR size, and manual overrides",
        f"- Monthly leaderboard resets on the 1st of each month ({DISPLAY_TIMEZONE_ABBR})",
        "- All-time stats persist across months",
        "",
        "---",
        "",
        "*This leaderboard is automatically generated. Manual edits will be overwritten.*",
    ]
    return "\n".join(md) + "\n"


# =========================
# Snapshot
# =========================
def build_snapshot(
    monthly: Sequence[ContributorStanding],
    all_time: Sequence[ContributorStanding],
    recent: Sequence[ScoredContribution],
    generated_at: datetime,
    pull_sizes: Optional[Dict[str, Dict[str, int]]] = None,
) -> Dict[str, Any]:
    return {
        "generated": generated_at.isoformat(),
        "month": month_label(generated_at),
        "contributors": [s.to_dict() for s in monthly],
        "allTime": [s.to_dict() for s in all_time],
        "recentActivity": [sc.to_dict() for sc in recent],
        "pullSizes": pull_sizes or {},
    }


def load_pull_sizes(path: Path) -> Dict[str, Dict[str, int]]:
    """
    Sizes recorded by the previous run, keyed "owner/repo#number".
    A missing or unreadable snapshot just means nothing is known yet.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        print(f"Ignoring previous snapshot {path}: {exc}", file=sys.stderr)
        return {}

    sizes = data.get("pullSizes") if isinstance(data, dict) else None
    if not isinstance(sizes, dict):
        return {}
    return {k: v for k, v in sizes.items() if isinstance(v, dict)}


def write_snapshot(path: Path, snapshot: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(snapshot, f, indent=2, ensure_ascii=False)
        f.write("\n")


def write_markdown(path: Path, markdown: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(markdown)
