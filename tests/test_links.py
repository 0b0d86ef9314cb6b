"""Tests for crawler.links."""

from __future__ import annotations

import pytest

from crawler.links import (
    LinkPolicy,
    LinkPrioritizer,
    analyze_domain_patterns,
    filter_by_domain_policy,
)
from crawler.types import Link


BASE_URL = "https://example.com/"


@pytest.fixture
def prioritizer():
    return LinkPrioritizer()


class TestLinkPrioritizer:
    def test_content_link_scores(self, prioritizer):
        link = Link(url="https://example.com/blog/python-tips", text="Python blog tips")
        # host 10 + anchor (3 + 5) + structure (8 + 3 + 1 + 2)
        assert prioritizer.score(link, BASE_URL) == pytest.approx(32.0)

    def test_generic_cross_host_link_scores(self, prioritizer):
        link = Link(url="https://other.org/x?id=1", text="click here")
        # host 2 + anchor (3 - 2) + structure (3 + 2)
        assert prioritizer.score(link, BASE_URL) == pytest.approx(8.0)

    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/login",
            "https://example.com/account/settings",
            "https://example.com/api/v1/items",
            "https://example.com/files/report.pdf",
        ],
    )
    def test_avoided_urls_score_zero(self, prioritizer, url):
        assert prioritizer.should_avoid(url)
        assert prioritizer.score(Link(url=url, text="Useful article"), BASE_URL) == 0.0

    def test_non_http_scores_zero(self, prioritizer):
        assert prioritizer.score(Link(url="ftp://example.com/file", text="File"), BASE_URL) == 0.0

    def test_prioritize_drops_zero_and_sorts_descending(self, prioritizer):
        links = [
            Link(url="https://other.org/x?id=1", text="click here"),
            Link(url="https://example.com/account/settings", text="My account"),
            Link(url="https://example.com/blog/python-tips", text="Python blog tips"),
        ]
        ranked = prioritizer.prioritize(links, BASE_URL)
        assert [item.url for item in ranked] == [
            "https://example.com/blog/python-tips",
            "https://other.org/x?id=1",
        ]
        assert ranked[0].priority > ranked[1].priority > 0

    def test_context_rewards_relevant_words_and_anchor_overlap(self, prioritizer):
        plain = Link(url="https://example.com/a", text="Generators")
        with_context = Link(
            url="https://example.com/a",
            text="Generators",
            context="Learn the detailed story of generators in this comprehensive guide to the language.",
        )
        # long context +2, learn/detailed/comprehensive +3, anchor overlap +1
        assert prioritizer.score(with_context, BASE_URL) - prioritizer.score(plain, BASE_URL) == pytest.approx(6.0)


class TestDomainPolicy:
    LINKS = [
        Link(url="https://example.com/a", text="a"),
        Link(url="https://blog.example.com/b", text="b"),
        Link(url="https://other.org/c", text="c"),
        Link(url="https://example.com/d", text="d"),
    ]

    def test_no_rules_keeps_everything(self):
        assert filter_by_domain_policy(self.LINKS, LinkPolicy()) == self.LINKS

    def test_allowlist_matches_subdomains(self):
        kept = filter_by_domain_policy(self.LINKS, LinkPolicy(allowed_domains=["example.com"]))
        assert [link.text for link in kept] == ["a", "b", "d"]

    def test_blocklist(self):
        kept = filter_by_domain_policy(self.LINKS, LinkPolicy(blocked_domains=["other.org"]))
        assert [link.text for link in kept] == ["a", "b", "d"]

    def test_per_domain_cap(self):
        kept = filter_by_domain_policy(self.LINKS, LinkPolicy(max_links_per_domain=1))
        assert [link.text for link in kept] == ["a", "b", "c"]

    def test_round_trip_and_validation(self):
        policy = LinkPolicy(allowed_domains=["example.com"], max_links_per_domain=5)
        assert LinkPolicy.from_dict(policy.to_dict()) == policy
        with pytest.raises(ValueError):
            LinkPolicy(max_links_per_domain=0)
        with pytest.raises(ValueError):
            LinkPolicy.from_dict({"allowed_domains": "example.com"})


class TestAnalyzeDomainPatterns:
    def test_summary(self):
        links = [
            Link(url="https://example.com/blog/one", text="Python generators"),
            Link(url="https://example.com/blog/two", text="Python iterators"),
            Link(url="https://example.com/about", text="About"),
            Link(url="https://other.org/blog/three", text="Elsewhere"),
        ]
        summary = analyze_domain_patterns(links, "example.com")
        assert summary["common_paths"][0] == {"segment": "blog", "count": 2}
        assert summary["common_anchor_words"][0] == {"word": "python", "count": 2}
        assert summary["depth_distribution"] == {1: 1, 2: 2}
