"""
Tests for per-platform filter sets, serialization and filter views.
"""

import json

import pytest

from marketplace_watcher.models.filters import (
    CLEAR_KEY,
    EnjoeiFilters,
    FilterOption,
    FilterView,
    MercadoLivreFilters,
    OlxFilters,
    deserialize_filters,
    filters_for_platform,
    parse_callback_data,
    serialize_filters,
)

TOGGLES = [
    (EnjoeiFilters, "used", "t"),
    (EnjoeiFilters, "dep", "m"),
    (EnjoeiFilters, "dep", "f"),
    (EnjoeiFilters, "sz", "gg"),
    (EnjoeiFilters, "sr", "near"),
    (EnjoeiFilters, "sr", "country"),
    (EnjoeiFilters, "sort", "a"),
    (EnjoeiFilters, "lp", "7d"),
    (EnjoeiFilters, "lp", "24h"),
    (MercadoLivreFilters, "cond", "usado"),
    (MercadoLivreFilters, "sort", "d"),
    (MercadoLivreFilters, "ship", "t"),
    (OlxFilters, "sort", "rel"),
    (OlxFilters, "sort", "date"),
    (OlxFilters, "ps", "100"),
    (OlxFilters, "pe", "5000"),
    (EnjoeiFilters, "bogus", "x"),
    (EnjoeiFilters, "dep", "x"),
]


class TestToggle:
    """Test cases for toggling filter values."""

    def test_flag_flips(self):
        filters = EnjoeiFilters().toggled("used", "t")
        assert filters.used is True
        assert filters.toggled("used", "t").used is False

    def test_choice_selects_and_clears(self):
        filters = EnjoeiFilters().toggled("dep", "m")
        assert filters.dep == "masculino"
        assert filters.toggled("dep", "m").dep is None

    def test_choice_switches_between_values(self):
        filters = EnjoeiFilters().toggled("dep", "m").toggled("dep", "f")
        assert filters.dep == "feminino"

    def test_stored_value_accepted_as_token(self):
        assert EnjoeiFilters().toggled("sort", "price_desc").sort == "price_desc"

    def test_unknown_key_or_value_is_noop(self):
        filters = EnjoeiFilters(dep="masculino")
        assert filters.toggled("color", "red") is filters
        assert filters.toggled("sz", "xxl") is filters

    def test_default_value_is_noop(self):
        filters = EnjoeiFilters()
        assert filters.toggled("lp", "24h") is filters
        assert OlxFilters().toggled("sort", "date") == OlxFilters()

    def test_free_text_digits_only(self):
        filters = OlxFilters().toggled("ps", "150")
        assert filters.ps == "150"
        assert filters.toggled("ps", "150").ps is None
        assert OlxFilters().toggled("pe", "abc") == OlxFilters()

    @pytest.mark.parametrize("filter_type,key,value", TOGGLES)
    def test_double_toggle_restores(self, filter_type, key, value):
        for start in (filter_type(), filter_type().toggled(key, value)):
            assert start.toggled(key, value).toggled(key, value) == start

    def test_toggled_does_not_mutate(self):
        original = MercadoLivreFilters()
        original.toggled("cond", "novo")
        assert original == MercadoLivreFilters()


class TestIsActive:
    """Test cases for option state."""

    def test_default_choice_is_active_when_unset(self):
        assert EnjoeiFilters().is_active("lp", "24h")
        assert not EnjoeiFilters().is_active("lp", "7d")
        assert OlxFilters().is_active("sort", "date")

    def test_unknown_token_is_inactive(self):
        assert not EnjoeiFilters().is_active("dep", "x")
        assert not EnjoeiFilters().is_active("nope", "x")

    def test_selected_choice_is_active(self):
        filters = EnjoeiFilters(lp="7d")
        assert filters.is_active("lp", "7d")
        assert not filters.is_active("lp", "24h")


class TestSerialization:
    """Test cases for filter serialization."""

    def test_all_default_serializes_to_none(self):
        assert serialize_filters(None) is None
        assert serialize_filters(EnjoeiFilters()) is None
        assert serialize_filters(OlxFilters(sort="date")) is None

    def test_compact_sorted_json(self):
        blob = serialize_filters(EnjoeiFilters(used=True, dep="masculino"))
        assert blob == '{"dep":"masculino","used":true}'

    @pytest.mark.parametrize(
        "filters",
        [
            EnjoeiFilters(lp="30d", used=True, dep="feminino", sz="m", sr="near_regions", sort="price_asc"),
            MercadoLivreFilters(cond="usado", sort="price_desc", ship=True),
            OlxFilters(sort="relevance", ps="100", pe="900"),
        ],
    )
    def test_round_trip(self, filters):
        assert deserialize_filters(filters.platform, serialize_filters(filters)) == filters

    @pytest.mark.parametrize("blob", ["not json", "[1, 2]", '"text"', "", None, "{}"])
    def test_bad_blob_is_absent(self, blob):
        assert deserialize_filters("enjoei", blob) is None

    def test_unknown_values_are_dropped(self):
        blob = json.dumps({"dep": "other", "sz": "m", "used": "yes", "extra": 1})
        assert deserialize_filters("enjoei", blob) == EnjoeiFilters(sz="m")

    def test_unknown_platform_is_absent(self):
        assert deserialize_filters("shopee", '{"sort":"price_asc"}') is None

    def test_filters_for_platform(self):
        assert filters_for_platform("ml") is MercadoLivreFilters
        with pytest.raises(ValueError):
            filters_for_platform("shopee")


class TestFilterView:
    """Test cases for filter views and callback data."""

    def test_inline_keyboard_shape(self):
        view = FilterView(
            watch_id=7,
            keyword="nike",
            platform_name="Enjoei",
            rows=[
                [FilterOption("Masculino", "dep", "m", True)],
                [FilterOption("🗑 Limpar filtros", CLEAR_KEY, "0")],
            ],
        )

        keyboard = view.to_inline_keyboard()

        assert keyboard == {
            "inline_keyboard": [
                [{"text": "✅ Masculino", "callback_data": "f:7:dep:m"}],
                [{"text": "🗑 Limpar filtros", "callback_data": "f:7:clr:0"}],
            ]
        }
        assert view.title == 'Filtros para "nike" (Enjoei)'
        assert [o.key for o in view.active_options()] == ["dep"]

    def test_parse_callback_data(self):
        assert parse_callback_data("f:12:sort:a") == (12, "sort", "a")
        assert parse_callback_data("f:x:sort:a") is None
        assert parse_callback_data("other:1:2:3") is None
        assert parse_callback_data("f:1:sort") is None
