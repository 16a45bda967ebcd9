"""
Unit Tests for KeyCodec and CacheEntry

Tests canonical key encoding, pattern validation and the entry timeline.
"""

from datetime import date

import pytest

from backoffice_cache.core.exceptions import InvalidCachePatternError
from backoffice_cache.infrastructure.cache import CacheEntry, KeyCodec


@pytest.mark.unit
class TestKeyEncoding:
    """Test KeyCodec.encode."""

    def test_parameter_order_does_not_matter(self):
        """Test that equal parameter maps give the same key."""
        first = KeyCodec.encode("invoices", {"status": "paid", "page": 1, "shopId": 3})
        second = KeyCodec.encode("invoices", {"shopId": 3, "page": 1, "status": "paid"})

        assert first == second

    def test_none_values_are_omitted(self):
        """Test that a None parameter is the same as an absent one."""
        assert KeyCodec.encode("invoices", {"page": 1, "shopId": None}) == KeyCodec.encode(
            "invoices", {"page": 1}
        )

    def test_documented_shape(self):
        """Test the canonical layout of a key."""
        key = KeyCodec.encode("invoices", {"status": "paid", "page": 1, "shopId": None})
        assert key == "invoices:page:!i1:status:paid"

    def test_no_params_gives_base_name(self):
        """Test that a bare base name is a valid key."""
        assert KeyCodec.encode("dashboard") == "dashboard"
        assert KeyCodec.encode("dashboard", {"shopId": None}) == "dashboard"

    def test_int_and_string_differ(self):
        """Test that 1 and "1" never share a key."""
        assert KeyCodec.encode("products", {"id": 1}) != KeyCodec.encode("products", {"id": "1"})

    def test_bool_and_int_differ(self):
        """Test that True and 1 never share a key."""
        assert KeyCodec.encode("products", {"active": True}) != KeyCodec.encode("products", {"active": 1})

    def test_separator_in_value_cannot_collide(self):
        """Test that values containing the separator are escaped."""
        tricky = KeyCodec.encode("customers", {"q": "a:b"})
        split = KeyCodec.encode("customers", {"q": "a", "b": None})

        assert tricky != split
        assert tricky.count(":") == 2

    def test_wildcards_and_type_tag_escaped_in_strings(self):
        """Test that user text cannot inject wildcards or fake type tags."""
        key = KeyCodec.encode("customers", {"q": "*!i1%"})

        assert "*" not in key
        assert KeyCodec.encode_value("!i1") != KeyCodec.encode_value(1)

    def test_collections_are_order_insensitive_for_dicts_and_sets(self):
        """Test that dict keys and sets are normalised."""
        assert KeyCodec.encode_value({"b": 1, "a": 2}) == KeyCodec.encode_value({"a": 2, "b": 1})
        assert KeyCodec.encode_value({3, 1, 2}) == KeyCodec.encode_value({2, 3, 1})

    def test_list_order_is_significant(self):
        """Test that lists keep their order."""
        assert KeyCodec.encode_value([1, 2]) != KeyCodec.encode_value([2, 1])

    def test_arbitrary_objects_never_raise(self):
        """Test that unrepresentable values still encode."""

        class Broken:
            def __str__(self):
                raise RuntimeError("no str")

        assert KeyCodec.encode_value(date(2024, 1, 31)).startswith("!odate.")
        assert KeyCodec.encode_value(Broken()).startswith("!oBroken.")

    def test_float_encoding(self):
        """Test that floats carry their own tag."""
        assert KeyCodec.encode_value(1.5).startswith("!f")
        assert KeyCodec.encode_value(1.0) != KeyCodec.encode_value(1)

    def test_namespace_of(self):
        """Test namespace extraction."""
        assert KeyCodec.namespace_of("invoices:page:!i1") == "invoices"
        assert KeyCodec.namespace_of("dashboard") == "dashboard"


@pytest.mark.unit
class TestPatterns:
    """Test pattern parsing and matching."""

    def test_prefix_pattern(self):
        """Test a trailing wildcard pattern."""
        assert KeyCodec.parse_pattern("invoices:*") == ("invoices:", True)

    def test_exact_pattern(self):
        """Test a pattern without wildcard."""
        assert KeyCodec.parse_pattern("invoices:page:!i1") == ("invoices:page:!i1", False)

    def test_bare_wildcard_matches_everything(self):
        """Test that '*' is a valid empty prefix."""
        prefix, is_prefix = KeyCodec.parse_pattern("*")
        assert (prefix, is_prefix) == ("", True)
        assert KeyCodec.matches("anything:at:all", prefix, is_prefix)

    @pytest.mark.parametrize("pattern", ["", "inv*ces:*", "*:page", "a**"])
    def test_unsupported_patterns_rejected(self, pattern):
        """Test that only a single trailing wildcard is accepted."""
        with pytest.raises(InvalidCachePatternError):
            KeyCodec.parse_pattern(pattern)

    def test_prefix_with_separator_covers_root_key(self):
        """Test that 'invoices:*' also covers the bare 'invoices' key."""
        prefix, is_prefix = KeyCodec.parse_pattern("invoices:*")

        assert KeyCodec.matches("invoices", prefix, is_prefix)
        assert KeyCodec.matches("invoices:page:!i1", prefix, is_prefix)
        assert not KeyCodec.matches("invoices-statistics", prefix, is_prefix)
        assert not KeyCodec.matches("invoice", prefix, is_prefix)

    def test_exact_match(self):
        """Test exact patterns match one key only."""
        assert KeyCodec.matches("invoices", "invoices", False)
        assert not KeyCodec.matches("invoices:page:!i1", "invoices", False)

    def test_escape_glob(self):
        """Test Redis glob metacharacters are escaped."""
        assert KeyCodec.escape_glob("a?b[c]*\\") == "a\\?b\\[c\\]\\*\\\\"
        assert KeyCodec.escape_glob("invoices:") == "invoices:"


@pytest.mark.unit
class TestCacheEntry:
    """Test the entry freshness timeline."""

    def test_timeline(self):
        """Test that create lays out expires, stale and grace boundaries."""
        entry = CacheEntry.create("k", 1, ttl_seconds=60, stale_seconds=30, grace_seconds=10, now=100.0)

        assert entry.created_at == 100.0
        assert entry.expires_at == 160.0
        assert entry.stale_until == 190.0
        assert entry.grace_until == 200.0

    def test_states(self):
        """Test fresh, servable and grace checks at the boundaries."""
        entry = CacheEntry.create("k", 1, ttl_seconds=60, stale_seconds=30, grace_seconds=10, now=0.0)

        assert entry.is_fresh(60.0)
        assert not entry.is_fresh(60.1)
        assert entry.is_servable(90.0)
        assert not entry.is_servable(90.1)
        assert entry.within_grace(100.0)
        assert not entry.within_grace(100.1)

    def test_entry_is_immutable(self):
        """Test that entries are frozen."""
        entry = CacheEntry.create("k", 1, ttl_seconds=1, now=0.0)

        with pytest.raises(AttributeError):
            entry.value = 2
