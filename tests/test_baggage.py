"""Tests for the baggage codec."""

from tracelink.context.baggage import (
    MAX_BAGGAGE_STRING_LENGTH,
    Baggage,
    merge_outgoing_baggage,
    parse_baggage,
    serialize_baggage,
)


class TestParseBaggage:
    def test_partitions_sentry_and_third_party(self):
        baggage = parse_baggage("sentry-release=2.0.0,sentry-environment=myEnv,dogs=great")
        assert baggage.sentry_entries == {"release": "2.0.0", "environment": "myEnv"}
        assert baggage.third_party_entries == {"dogs": "great"}
        assert baggage.third_party_items == ["dogs=great"]

    def test_preserves_order(self):
        baggage = parse_baggage("sentry-b=2,x=1,sentry-a=1,y=2")
        assert list(baggage.sentry_entries) == ["b", "a"]
        assert list(baggage.third_party_entries) == ["x", "y"]

    def test_trims_and_decodes(self):
        baggage = parse_baggage(" sentry-transaction=GET%20%2Fusers , other=a%2Cb ")
        assert baggage.sentry_entries == {"transaction": "GET /users"}
        assert baggage.third_party_entries == {"other": "a,b"}
        assert baggage.third_party_items == ["other=a%2Cb"]

    def test_empty_and_missing(self):
        assert not parse_baggage(None)
        assert not parse_baggage("")
        assert parse_baggage("").sentry_entries == {}

    def test_malformed_items_are_skipped(self):
        baggage = parse_baggage("novalue,=nokey,,sentry-release=1.0")
        assert baggage.sentry_entries == {"release": "1.0"}
        assert baggage.third_party_items == []

    def test_entry_properties_are_kept_raw(self):
        baggage = parse_baggage("vendor=abc;prop=1")
        assert baggage.third_party_entries == {"vendor": "abc"}
        assert baggage.third_party_items == ["vendor=abc;prop=1"]


class TestSerializeBaggage:
    def test_sentry_entries_only_by_default(self):
        baggage = parse_baggage("sentry-release=2.0.0,sentry-environment=myEnv,dogs=great")
        assert serialize_baggage(baggage) == "sentry-release=2.0.0,sentry-environment=myEnv"

    def test_third_party_appended_untouched(self):
        baggage = parse_baggage("sentry-release=2.0.0,other=a%2Cb;p=1")
        assert serialize_baggage(baggage, include_third_party=True) == "sentry-release=2.0.0,other=a%2Cb;p=1"

    def test_reserved_characters_are_encoded(self):
        baggage = Baggage(sentry_entries={"transaction": "GET /test/express", "weird": "a,b;c=d"})
        assert serialize_baggage(baggage) == (
            "sentry-transaction=GET%20%2Ftest%2Fexpress,sentry-weird=a%2Cb%3Bc%3Dd"
        )

    def test_encoding_survives_parsing(self):
        original = Baggage(sentry_entries={"transaction": "POST /a,b", "release": "1.0+build"})
        parsed = parse_baggage(serialize_baggage(original))
        assert parsed.sentry_entries == original.sentry_entries

    def test_length_limit_drops_items(self):
        baggage = Baggage(sentry_entries={"release": "1.0", "huge": "x" * MAX_BAGGAGE_STRING_LENGTH})
        assert serialize_baggage(baggage) == "sentry-release=1.0"


class TestMergeOutgoingBaggage:
    def test_keeps_existing_third_party_and_replaces_sentry(self):
        merged = merge_outgoing_baggage(
            "foo=bar,sentry-release=stale",
            {"release": "1.0", "environment": "prod"},
        )
        assert merged == "sentry-release=1.0,sentry-environment=prod,foo=bar"

    def test_without_existing_header(self):
        assert merge_outgoing_baggage(None, {"release": "1.0"}) == "sentry-release=1.0"

    def test_empty_dsc_keeps_third_party(self):
        assert merge_outgoing_baggage("foo=bar", {}) == "foo=bar"
