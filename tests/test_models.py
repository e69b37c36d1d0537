"""Unit tests — granularity parsing."""

import pytest

from lightbeat.sync.models import Granularity


@pytest.mark.parametrize("member", list(Granularity))
def test_parse_returns_members_unchanged(member):
    assert Granularity.parse(member) is member


@pytest.mark.parametrize("name,expected", [
    ("bar", Granularity.BAR),
    (" Section\n", Granularity.SECTION),
    (b"tatum", Granularity.TATUM),
])
def test_parse_names(name, expected):
    assert Granularity.parse(name) is expected


def test_unknown_name_falls_back():
    assert Granularity.parse("cowbell") is Granularity.BEAT
    assert Granularity.parse(None) is Granularity.BEAT
    assert Granularity.parse("cowbell", default=Granularity.BAR) is Granularity.BAR
