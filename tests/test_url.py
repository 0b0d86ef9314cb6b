"""Tests for crawler.url."""

from __future__ import annotations

import pytest

from crawler.url import (
    host_from_url,
    is_allowed_domain,
    is_internal,
    normalize_domain,
    normalize_url,
    resolve_url,
    should_exclude,
)


class TestNormalizeUrl:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("HTTP://Example.COM", "http://example.com/"),
            ("https://example.com:443/a/", "https://example.com/a"),
            ("http://example.com:8080/a", "http://example.com:8080/a"),
            ("https://example.com/a#section", "https://example.com/a"),
            ("https://example.com/a?b=2&a=1", "https://example.com/a?a=1&b=2"),
            ("https://example.com/a?utm_source=x&id=3&fbclid=y", "https://example.com/a?id=3"),
            ("https://example.com//a/./b/../c", "https://example.com/a/c"),
        ],
    )
    def test_canonical_form(self, raw, expected):
        assert normalize_url(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        [None, "", "   ", "not a url", "/relative/path", "ftp://example.com/file", "javascript:void(0)"],
    )
    def test_invalid(self, raw):
        assert normalize_url(raw) is None

    def test_idempotent(self):
        once = normalize_url("HTTPS://Example.com:443/a/b/?z=1&utm_medium=m#x")
        assert normalize_url(once) == once


class TestResolveUrl:
    def test_relative(self):
        assert resolve_url("https://example.com/blog/post", "../about") == "https://example.com/about"

    @pytest.mark.parametrize("href", [None, "", "#top", "mailto:a@b.c", "tel:123", "javascript:go()"])
    def test_skipped(self, href):
        assert resolve_url("https://example.com/", href) is None

    def test_without_normalization(self):
        assert (
            resolve_url("https://example.com/", "/img/A.png", normalize=False)
            == "https://example.com/img/A.png"
        )


class TestDomains:
    def test_normalize_domain(self):
        assert normalize_domain("WWW.Example.com") == "example.com"
        assert normalize_domain("https://www.example.com/path") == "example.com"

    def test_host_from_url(self):
        assert host_from_url("https://www.Example.com/a") == "example.com"

    def test_is_internal_requires_same_host(self):
        assert is_internal("https://example.com/a", "https://example.com/b")
        assert not is_internal("https://blog.example.com/a", "https://example.com/b")

    def test_allowed_domain_suffix_match(self):
        assert is_allowed_domain("https://docs.example.com/x", ["example.com"])
        assert not is_allowed_domain("https://badexample.com/x", ["example.com"])

    def test_should_exclude(self):
        assert should_exclude("https://example.com/file.pdf")
        assert should_exclude("https://example.com/private/x", ["/private/"])
        assert not should_exclude("https://example.com/article")
