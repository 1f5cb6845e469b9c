"""Tests for the session filter chain."""

import logging
import math

import pytest

from plex_notify.errors import PlexFilterError
from plex_notify.filters import (
    UNDEFINED,
    FilterEngine,
    load_filters,
    loose_equals,
    matches,
    resolve_path,
    to_bool,
    to_num,
    to_str,
)
from plex_notify.types import FilterSpec, Operator, ValueType


def _spec(key, value, value_type="default", operator="eq", idx=0):
    return FilterSpec(
        key=key,
        value=value,
        value_type=ValueType(value_type),
        operator=Operator(operator),
        idx=idx,
    )


# =========================================================================
# Path resolution
# =========================================================================


class TestResolvePath:
    def test_nested_field(self):
        session = {"Player": {"state": "playing"}}
        assert resolve_path(session, "Player.state") == "playing"

    def test_list_index(self):
        session = {"Media": [{"bitrate": 4000}, {"bitrate": 8000}]}
        assert resolve_path(session, "Media.1.bitrate") == 8000

    def test_missing_intermediate_is_undefined(self):
        assert resolve_path({"Player": None}, "Player.state") is UNDEFINED
        assert resolve_path({}, "User.title") is UNDEFINED

    def test_index_out_of_range(self):
        assert resolve_path({"Media": []}, "Media.0") is UNDEFINED


# =========================================================================
# Coercion
# =========================================================================


class TestCoercion:
    def test_to_str(self):
        assert to_str(UNDEFINED) == "undefined"
        assert to_str(None) == "null"
        assert to_str(True) == "true"
        assert to_str(1.0) == "1"
        assert to_str(1.5) == "1.5"
        assert to_str([1, None, "a"]) == "1,,a"
        assert to_str({"a": 1}) == "[object Object]"

    def test_to_num(self):
        assert to_num("42") == 42
        assert to_num("  3.5 ") == 3.5
        assert to_num("") == 0
        assert to_num(None) == 0
        assert to_num(True) == 1
        assert to_num("0x10") == 16
        assert math.isnan(to_num("abc"))
        assert math.isnan(to_num(UNDEFINED))
        assert math.isnan(to_num({"a": 1}))

    def test_to_bool(self):
        assert to_bool("false") is True
        assert to_bool("") is False
        assert to_bool(0) is False
        assert to_bool(float("nan")) is False
        assert to_bool([]) is True
        assert to_bool({}) is True
        assert to_bool(UNDEFINED) is False

    def test_loose_equals(self):
        assert loose_equals("5", 5) is True
        assert loose_equals(None, UNDEFINED) is True
        assert loose_equals(0, None) is False
        assert loose_equals("1", True) is True
        assert loose_equals(float("nan"), float("nan")) is False


# =========================================================================
# Chain evaluation
# =========================================================================


class TestMatches:
    def test_empty_chain_matches_everything(self):
        assert matches({"anything": 1}, []) is True
        assert matches({}, []) is True

    def test_string_equality(self):
        session = {"Player": {"state": "playing"}, "prevState": "paused"}
        f = _spec("Player.state", "playing", "str", "eq")
        assert matches(session, [f]) is True

    def test_string_inequality(self):
        session = {"Player": {"state": "buffering"}}
        f = _spec("Player.state", "playing", "str", "eq")
        assert matches(session, [f]) is False

    def test_all_filters_must_hold(self):
        session = {"Player": {"state": "playing"}, "User": {"title": "alice"}}
        chain = [
            _spec("Player.state", "playing", "str", "eq", idx=0),
            _spec("User.title", "bob", "str", "eq", idx=1),
        ]
        assert matches(session, chain) is False
        assert matches(session, chain[:1]) is True

    def test_filter_value_is_left_operand(self):
        session = {"viewOffset": 20}
        assert matches(session, [_spec("viewOffset", 10, "num", "lt")]) is True
        assert matches(session, [_spec("viewOffset", 30, "num", "lt")]) is False
        assert matches(session, [_spec("viewOffset", 30, "num", "gt")]) is True
        assert matches(session, [_spec("viewOffset", 20, "num", "lte")]) is True
        assert matches(session, [_spec("viewOffset", 20, "num", "gte")]) is True

    def test_numeric_coercion_of_strings(self):
        session = {"duration": "5400000"}
        assert matches(session, [_spec("duration", "5400000", "num", "eq")]) is True
        assert matches(session, [_spec("duration", 1000, "num", "lt")]) is True

    @pytest.mark.parametrize(
        "operator,expected",
        [
            ("eq", False),
            ("neq", True),
            ("lt", False),
            ("lte", False),
            ("gt", False),
            ("gte", False),
        ],
    )
    def test_non_numeric_session_value(self, operator, expected):
        session = {"viewOffset": "not-a-number"}
        f = _spec("viewOffset", 100, "num", operator)
        assert matches(session, [f]) is expected

    def test_missing_field_with_str_type(self):
        # String(undefined) == "undefined"
        session = {"Player": {}}
        assert matches(session, [_spec("Player.state", "playing", "str", "eq")]) is False
        assert matches(session, [_spec("Player.state", "playing", "str", "neq")]) is True

    def test_bool_type_uses_truthiness(self):
        session = {"Player": {"local": "false"}}
        assert matches(session, [_spec("Player.local", True, "bool", "eq")]) is True
        session = {"Player": {"local": 0}}
        assert matches(session, [_spec("Player.local", True, "bool", "eq")]) is False

    def test_default_type_uses_loose_equality(self):
        session = {"index": 3}
        assert matches(session, [_spec("index", "3", "default", "eq")]) is True
        assert matches(session, [_spec("index", "3", "default", "neq")]) is False

    def test_string_relational_is_lexicographic(self):
        session = {"title": "beta"}
        assert matches(session, [_spec("title", "alpha", "str", "lt")]) is True
        assert matches(session, [_spec("title", "gamma", "str", "lt")]) is False

    def test_evaluates_in_idx_order(self, caplog):
        caplog.set_level(logging.DEBUG, logger="plex_notify")
        session = {"a": "x", "b": "y"}
        chain = [
            _spec("b", "y", "str", "eq", idx=2),
            _spec("a", "nope", "str", "eq", idx=1),
        ]
        assert matches(session, chain) is False

        evaluations = [r.getMessage() for r in caplog.records if "evaluate" in r.getMessage()]
        # every filter runs even after a failure
        assert len(evaluations) == 2
        assert "'nope'" in evaluations[0]
        assert "'y'" in evaluations[1]


# =========================================================================
# Loading from configuration
# =========================================================================


class TestLoadFilters:
    def test_sorted_by_idx(self):
        specs = load_filters(
            [
                {"key": "b", "value": 1, "valueType": "num", "operator": "gt", "idx": 2},
                {"key": "a", "value": "x", "valueType": "str", "operator": "eq", "idx": 0},
            ]
        )
        assert [s.key for s in specs] == ["a", "b"]
        assert specs[1].value_type == ValueType.NUM
        assert specs[1].operator == Operator.GT

    def test_snake_case_value_type(self):
        (spec,) = load_filters([{"key": "a", "value": "1", "value_type": "num"}])
        assert spec.value_type == ValueType.NUM
        assert spec.operator == Operator.EQ

    def test_unknown_operator_rejected(self):
        with pytest.raises(PlexFilterError):
            load_filters([{"key": "a", "value": 1, "operator": "between"}])

    def test_missing_key_rejected(self):
        with pytest.raises(PlexFilterError):
            load_filters([{"value": 1}])

    def test_unknown_value_type_falls_back_to_default(self):
        (spec,) = load_filters([{"key": "a", "value": 1, "valueType": "json"}])
        assert spec.value_type == ValueType.DEFAULT

    def test_none_gives_empty_chain(self):
        assert load_filters(None) == []

    def test_engine_wraps_chain(self):
        engine = FilterEngine(
            [{"key": "Player.state", "value": "paused", "valueType": "str", "operator": "eq"}]
        )
        assert len(engine) == 1
        assert engine.matches({"Player": {"state": "paused"}}) is True
        assert engine.matches({"Player": {"state": "playing"}}) is False
