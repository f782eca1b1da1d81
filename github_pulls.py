import sys
import time
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import requests

from scoring import Contribution

API_BASE = "https://api.github.com"
USER_AGENT = "contributor-leaderboard"

PULLS_PER_PAGE = 100

# pacing to reduce secondary rate-limit risk
PACE_SECONDS = 0.20


# =========================
# HTTP + Rate Limit Handling
# =========================
def gh_headers(token: Optional[str] = None) -> Dict[str, str]:
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
        "User-Agent": USER_AGENT,
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _backoff_sleep(resp: requests.Response, attempt: int) -> None:
    """
    Handle primary + secondary-ish rate limits.
    """
    retry_after = resp.headers.get("retry-after")
    if retry_after and retry_after.isdigit():
        time.sleep(min(int(retry_after), 60) + 1)
        return

    remaining = resp.headers.get("x-ratelimit-remaining")
    reset = resp.headers.get("x-ratelimit-reset")

    if remaining == "0" and reset and reset.isdigit():
        wait = max(0, int(reset) - int(time.time()) + 2)
        time.sleep(min(wait, 180))
        return

    time.sleep(min(2 ** attempt, 60))


def gh_get(
    url: str,
    params: Optional[Dict[str, Any]] = None,
    token: Optional[str] = None,
    attempts: int = 7,
) -> requests.Response:
    last: Optional[requests.Response] = None
    last_exc: Optional[Exception] = None
    for attempt in range(attempts):
        try:
            resp = requests.get(url, headers=gh_headers(token), params=params, timeout=40)
            last = resp
        except requests.RequestException as exc:
            last_exc = exc
            time.sleep(min(2 ** attempt, 30))
            continue

        if resp.status_code in (403, 429):
            _backoff_sleep(resp, attempt)
            continue

        return resp

    if last is not None:
        return last
    raise RuntimeError(f"GET failed after {attempts} attempts: {url}") from last_exc


# =========================
# Pull requests
# =========================
def split_full_name(full_name: str) -> Tuple[str, str]:
    owner, repo = full_name.split("/", 1)
    return owner, repo


def parse_tracked_repos(value: str) -> List[str]:
    repos = []
    for part in value.split(","):
        name = part.strip()
        if not name:
            continue
        if name.count("/") != 1 or name.startswith("/") or name.endswith("/"):
            print(f"Ignoring malformed repository name: {name!r}", file=sys.stderr)
            continue
        if name not in repos:
            repos.append(name)
    return repos


def parse_timestamp(value: str) -> datetime:
    # GitHub sends "2024-05-01T12:00:00Z"
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def iter_closed_pulls(full_name: str, token: Optional[str] = None) -> Iterator[Dict[str, Any]]:
    owner, repo = split_full_name(full_name)
    page = 1

    while True:
        resp = gh_get(
            f"{API_BASE}/repos/{owner}/{repo}/pulls",
            params={
                "state": "closed",
                "sort": "updated",
                "direction": "desc",
                "per_page": PULLS_PER_PAGE,
                "page": page,
            },
            token=token,
        )
        if not resp.ok:
            raise RuntimeError(f"Listing pulls failed: {resp.status_code} {resp.text}")

        data = resp.json()
        if not isinstance(data, list) or not data:
            break

        for item in data:
            if isinstance(item, dict):
                yield item

        # a short page is the last one
        if len(data) < PULLS_PER_PAGE:
            break
        page += 1
        time.sleep(PACE_SECONDS)


def pull_author(pull: Dict[str, Any]) -> str:
    user = pull.get("user") or {}
    return user.get("login", "") or ""


def is_eligible_pull(pull: Dict[str, Any], since: datetime, whitelist: Sequence[str]) -> bool:
    merged_at = pull.get("merged_at")
    if not merged_at:
        return False
    if parse_timestamp(merged_at) < since:
        return False
    return pull_author(pull).lower() in whitelist


def fetch_pull_details(full_name: str, number: int, token: Optional[str] = None) -> Dict[str, Any]:
    """
    The list endpoint leaves out changed_files/additions/deletions; the
    single-PR endpoint has them.
    """
    owner, repo = split_full_name(full_name)
    try:
        resp = gh_get(f"{API_BASE}/repos/{owner}/{repo}/pulls/{number}", token=token)
    except RuntimeError as exc:
        print(f"Could not fetch details for {full_name}#{number}: {exc}", file=sys.stderr)
        return {}
    if not resp.ok:
        print(f"Could not fetch details for {full_name}#{number}: {resp.status_code}", file=sys.stderr)
        return {}

    try:
        data = resp.json()
    except ValueError:
        return {}
    if not isinstance(data, dict):
        return {}
    return data


SIZE_FIELDS = ("changed_files", "additions", "deletions")


def has_size_fields(pull: Dict[str, Any]) -> bool:
    return all(k in pull for k in SIZE_FIELDS)


def size_key(full_name: str, number: int) -> str:
    return f"{full_name}#{number}"


def pull_sizes(pulls: Sequence[Dict[str, Any]], full_name: str) -> Dict[str, Dict[str, int]]:
    """
    Size fields of every PR that has them, keyed like `size_key`, for
    the next run to reuse.
    """
    return {
        size_key(full_name, p["number"]): {k: parse_int(p[k]) for k in SIZE_FIELDS}
        for p in pulls
        if has_size_fields(p)
    }


def fetch_merged_pulls(
    full_name: str,
    since: datetime,
    whitelist: Sequence[str],
    token: Optional[str] = None,
    with_details: bool = True,
    known_sizes: Optional[Dict[str, Dict[str, int]]] = None,
) -> List[Dict[str, Any]]:
    """
    Merged PRs by whitelisted authors merged at or after `since`.

    Size fields missing from the listing come from `known_sizes` when a
    previous run recorded them, otherwise from one single-PR request each.

    A failure part-way through is reported and whatever was gathered so far
    is returned, so one bad repository never stops the others.
    """
    print(f"Fetching PRs from {full_name}...")
    pulls: List[Dict[str, Any]] = []

    try:
        for pull in iter_closed_pulls(full_name, token=token):
            if is_eligible_pull(pull, since, whitelist):
                pulls.append(pull)
    except (RuntimeError, ValueError) as exc:
        print(f"Error fetching from {full_name}: {exc}", file=sys.stderr)

    known_sizes = known_sizes or {}
    requested = 0
    if with_details:
        for pull in pulls:
            if has_size_fields(pull):
                continue
            known = known_sizes.get(size_key(full_name, pull["number"]))
            if known and all(k in known for k in SIZE_FIELDS):
                pull.update({k: known[k] for k in SIZE_FIELDS})
                continue
            details = fetch_pull_details(full_name, pull["number"], token=token)
            pull.update({k: details[k] for k in SIZE_FIELDS if k in details})
            requested += 1
            time.sleep(PACE_SECONDS)
        if requested:
            print(f"Fetched sizes for {requested} PRs in {full_name}")

    print(f"Found {len(pulls)} merged PRs from whitelisted members in {full_name}")
    return pulls


def parse_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def to_contribution(pull: Dict[str, Any], full_name: str) -> Contribution:
    labels = []
    for label in pull.get("labels", []) or []:
        name = label.get("name") if isinstance(label, dict) else label
        if isinstance(name, str) and name:
            labels.append(name)

    return Contribution(
        number=parse_int(pull.get("number")),
        author=pull_author(pull),
        labels=tuple(labels),
        merged_at=parse_timestamp(pull["merged_at"]),
        files_changed=parse_int(pull.get("changed_files", 0)),
        additions=parse_int(pull.get("additions", 0)),
        deletions=parse_int(pull.get("deletions", 0)),
        repo=full_name,
        title=pull.get("title", "") or "",
        url=pull.get("html_url", "") or "",
    )
