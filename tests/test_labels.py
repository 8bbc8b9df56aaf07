import json

import pytest
from hypothesis import given
from hypothesis import strategies as st

from parquetgw.labels import (
    Labels,
    Matcher,
    MatchType,
    compare,
    from_map,
    from_strings,
)

label_dicts = st.dictionaries(st.text(min_size=1, max_size=5), st.text(max_size=5), max_size=5)


def test_from_strings_sorts_by_name():
    lbls = from_strings("job", "api", "env", "prod")
    assert list(lbls) == [("env", "prod"), ("job", "api")]
    assert lbls.names() == ["env", "job"]


def test_from_strings_rejects_odd_count():
    with pytest.raises(ValueError):
        from_strings("a", "b", "c")


def test_get_and_has():
    lbls = from_strings("__name__", "foo", "bar", "baz")
    assert lbls.get("bar") == "baz"
    assert lbls.get("missing") == ""
    assert lbls.has("__name__")
    assert not lbls.has("missing")


def test_from_map_equals_from_strings():
    assert from_map({"b": "2", "a": "1"}) == from_strings("a", "1", "b", "2")
    assert len({from_map({"a": "1"}), from_strings("a", "1")}) == 1


def test_string_form():
    assert str(from_strings("b", "2", "a", "1")) == '{a="1", b="2"}'


@given(label_dicts)
def test_to_dict_round_trip(d):
    assert from_map(d).to_dict() == d


@given(label_dicts)
def test_compare_reflexive(d):
    lbls = from_map(d)
    assert compare(lbls, lbls) == 0


@given(label_dicts, label_dicts)
def test_compare_antisymmetric(a, b):
    la, lb = from_map(a), from_map(b)
    assert compare(la, lb) == -compare(lb, la)
    assert (compare(la, lb) == 0) == (la == lb)


def test_compare_prefix_sorts_first():
    short = from_strings("a", "1")
    long = from_strings("a", "1", "b", "2")
    assert compare(short, long) < 0
    assert sorted([long, short]) == [short, long]


def test_compare_by_value_then_name():
    assert compare(from_strings("a", "1"), from_strings("a", "2")) < 0
    assert compare(from_strings("b", "1"), from_strings("a", "9")) > 0


def test_equal_matcher():
    m = Matcher(MatchType.EQUAL, "job", "api")
    assert m.matches("api")
    assert not m.matches("apix")


def test_not_equal_matcher():
    m = Matcher(MatchType.NOT_EQUAL, "job", "api")
    assert m.matches("web")
    assert not m.matches("api")


def test_regexp_matcher_is_anchored():
    m = Matcher(MatchType.REGEXP, "a", "f.*")
    assert m.matches("foo")
    assert not m.matches("afoo")


def test_regexp_dot_matches_newline():
    assert Matcher(MatchType.REGEXP, "a", "f.*").matches("f\nx")


def test_not_regexp_matcher():
    m = Matcher(MatchType.NOT_REGEXP, "a", "f.*")
    assert m.matches("bar")
    assert not m.matches("foo")


def test_empty_regexp_matches_only_empty():
    m = Matcher(MatchType.REGEXP, "route", "")
    assert m.matches("")
    assert not m.matches("/")


def test_matcher_accepts_operator_string():
    assert Matcher("=~", "a", "x").type is MatchType.REGEXP


def test_invalid_regexp_rejected():
    with pytest.raises(ValueError):
        Matcher(MatchType.REGEXP, "a", "(")


def test_matcher_string_form():
    assert str(Matcher(MatchType.EQUAL, "foo", "bar")) == 'foo="bar"'


@given(st.text(alphabet=st.characters(min_codepoint=0x20, max_codepoint=0x7E)))
def test_matcher_string_quotes_value(value):
    m = Matcher(MatchType.NOT_EQUAL, "name", value)
    text = str(m)
    assert text.startswith("name!=")
    assert json.loads(text[len("name!="):]) == value