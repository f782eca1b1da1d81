"""Tests for members/points configuration parsing."""

from __future__ import annotations

import json

import pytest

from points import (
    ConfigError,
    MultiplierBucket,
    Participant,
    eligible_handles,
    load_members,
    load_points,
    parse_buckets,
    parse_members,
    parse_points,
)
from scoring import score


def test_members_are_lowercased_and_default_to_active() -> None:
    members = parse_members({"members": [{"github": "Alice"}, {"github": "bob", "status": "Inactive"}]})

    assert members == [Participant("alice", "active"), Participant("bob", "inactive")]


def test_alumni_are_not_eligible() -> None:
    members = parse_members(
        {
            "members": [
                {"github": "alice", "status": "active"},
                {"github": "carol", "status": "alumni"},
                {"github": "dave", "status": "inactive"},
            ]
        }
    )

    assert eligible_handles(members) == ("alice", "dave")


@pytest.mark.parametrize(
    "data",
    [{}, {"members": "alice"}, {"members": [{"status": "active"}]}, {"members": [{"github": "  "}]}, []],
)
def test_malformed_members_raise(data) -> None:
    with pytest.raises(ConfigError):
        parse_members(data)


def test_buckets_parse_ranges_and_open_ended() -> None:
    buckets = parse_buckets({"21+": 2.0, "4-10": 1.2, "11-20": 1.5})

    assert buckets == (
        MultiplierBucket(4, 10, 1.2),
        MultiplierBucket(11, 20, 1.5),
        MultiplierBucket(21, None, 2.0),
    )


def test_malformed_buckets_are_skipped() -> None:
    buckets = parse_buckets({"lots": 3.0, "4-10": "big", "20-5": 1.1, "51-200": 1.2, "x+": 2.0})

    assert buckets == (MultiplierBucket(51, 200, 1.2),)
    assert parse_buckets(None) == ()
    assert parse_buckets(["4-10"]) == ()


def test_parse_points_full_document() -> None:
    policy = parse_points(
        {
            "labelPoints": {"Bug": 3, "feature": 5},
            "multipliers": {
                "filesChanged": {"4-10": 1.2},
                "linesChanged": {"501+": 2},
            },
            "manualOverrides": {"42": 100, 7: 0},
        }
    )

    assert policy.label_points == {"bug": 3, "feature": 5}
    assert policy.files_changed == (MultiplierBucket(4, 10, 1.2),)
    assert policy.lines_changed == (MultiplierBucket(501, None, 2.0),)
    assert policy.override_for(42) == 100
    assert policy.override_for(7) == 0
    assert policy.override_for(8) is None
    assert policy.default_points == 2


def test_parse_points_without_multipliers() -> None:
    policy = parse_points({"labelPoints": {"bug": 3}})

    assert policy.files_changed == ()
    assert policy.lines_changed == ()
    assert policy.manual_overrides == {}


@pytest.mark.parametrize(
    "data",
    [
        {"manualOverrides": {"42": 2.5}},
        {"manualOverrides": {"42": True}},
        "points",
    ],
)
def test_invalid_points_raise(data) -> None:
    with pytest.raises(ConfigError):
        parse_points(data)


def test_label_points_accept_floats() -> None:
    policy = parse_points({"labelPoints": {"bug": 3, "docs": 1.5, "refactor": 3.0}})

    assert policy.label_points == {"bug": 3, "docs": 1.5, "refactor": 3.0}


@pytest.mark.parametrize("value", ["3", "three", -1, True, None, [3]])
def test_unusable_label_value_never_matches(value, make_contribution) -> None:
    policy = parse_points({"labelPoints": {"bug": 3, "docs": value}})

    assert "docs" not in policy.label_points
    result = score(make_contribution(labels=["docs"]), policy)
    assert result.labels == []
    assert result.base_points == 2
    assert result.points == 2


@pytest.mark.parametrize("raw", [["bug"], "bug", 3])
def test_label_points_that_are_not_an_object_are_ignored(raw, make_contribution) -> None:
    policy = parse_points({"labelPoints": raw})

    assert policy.label_points == {}
    assert score(make_contribution(labels=["bug"]), policy).points == 2


def test_load_from_files(tmp_path) -> None:
    (tmp_path / "members.json").write_text(json.dumps({"members": [{"github": "Alice"}]}), encoding="utf-8")
    (tmp_path / "points.json").write_text(json.dumps({"labelPoints": {"bug": 3}}), encoding="utf-8")

    assert load_members(tmp_path / "members.json") == [Participant("alice")]
    assert load_points(tmp_path / "points.json").label_points == {"bug": 3}


def test_unreadable_or_invalid_files_raise(tmp_path) -> None:
    (tmp_path / "points.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_points(tmp_path / "points.json")
    with pytest.raises(ConfigError):
        load_members(tmp_path / "missing.json")
