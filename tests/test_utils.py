"""
Tests for utility helpers.
"""

from shadow_user.utils import (
    canonical_arguments,
    is_absolute_url,
    is_cross_origin_link,
    parse_domain,
    redact_secrets,
    truncate_text,
)


class TestCrossOrigin:
    """Tests for is_cross_origin_link."""

    PAGE = "https://shop.test/catalog/fruit"

    def test_relative_and_fragment(self):
        assert not is_cross_origin_link("/cart", self.PAGE)
        assert not is_cross_origin_link("#top", self.PAGE)
        assert not is_cross_origin_link("item/5", self.PAGE)

    def test_missing_href(self):
        assert not is_cross_origin_link(None, self.PAGE)
        assert not is_cross_origin_link("", self.PAGE)

    def test_same_host(self):
        assert not is_cross_origin_link("https://SHOP.test/checkout", self.PAGE)

    def test_other_host(self):
        assert is_cross_origin_link("https://pay.example.com/", self.PAGE)

    def test_protocol_relative_other_host(self):
        assert is_cross_origin_link("//cdn.example.net/x", self.PAGE)

    def test_non_http_schemes(self):
        assert not is_cross_origin_link("javascript:void(0)", self.PAGE)
        assert not is_cross_origin_link("tel:+79990000000", self.PAGE)


class TestUrls:
    def test_parse_domain(self):
        assert parse_domain("https://Example.com:8080/path") == "example.com"
        assert parse_domain("not a url") == ""

    def test_is_absolute_url(self):
        assert is_absolute_url("https://example.com")
        assert is_absolute_url("about:blank")
        assert not is_absolute_url("example.com")
        assert not is_absolute_url("/cart")


class TestCanonicalArguments:
    def test_sorted_and_filtered(self):
        assert canonical_arguments('{"index": 2, "generation": 9}', ignore=("generation",)) == '{"index": 2}'
        assert canonical_arguments('{"b": 1, "a": 2}') == '{"a": 2, "b": 1}'

    def test_unparseable(self):
        assert canonical_arguments("  oops ") == "oops"

    def test_whole_floats_match_ints(self):
        assert canonical_arguments('{"index": 5.0}') == canonical_arguments('{"index": 5}')
        assert canonical_arguments('{"dy": 2.5, "flag": true}') == '{"dy": 2.5, "flag": true}'


class TestRedactSecrets:
    def test_nested(self):
        data = {"calls": [{"arguments": '{"text": "hunter2"}'}], "detail": "Human replied: hunter2", "step": 3}

        redacted = redact_secrets(data, {"hunter2"})

        assert "hunter2" not in str(redacted)
        assert redacted["step"] == 3
        assert redacted["detail"] == "Human replied: [REDACTED]"

    def test_no_secrets(self):
        data = {"a": "b"}
        assert redact_secrets(data, set()) is data


def test_truncate_text():
    assert truncate_text("abcdef", 10) == "abcdef"
    assert truncate_text("abcdefghij", 6) == "abc..."


class TestRedactWholeTokens:
    def test_substring_untouched(self):
        assert redact_secrets("https://yandex.ru/pay", {"y"}) == "https://yandex.ru/pay"

    def test_secret_with_symbols(self):
        """Secrets are matched literally, regex characters included."""
        assert redact_secrets('{"text": "p@ss.w*rd"}', {"p@ss.w*rd"}) == '{"text": "[REDACTED]"}'
