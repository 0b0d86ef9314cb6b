"""Tests for crawler.config and retrieval.config."""

from __future__ import annotations

import pytest

from crawler.config import CrawlConfig, load_config, save_config
from crawler.links import LinkPolicy
from crawler.types import FetchBackend
from retrieval.config import DEFAULT_BOOST_FACTORS, SearchConfig


class TestCrawlConfig:
    def test_defaults(self):
        config = CrawlConfig()
        assert config.max_concurrency == 5
        assert config.max_depth == 3
        assert config.delay_seconds == 1.0
        assert config.max_retries == 2
        assert config.max_children_per_page == 5
        assert config.backend == FetchBackend.SELENIUM
        assert config.respect_robots

    def test_seeds_are_stripped(self):
        config = CrawlConfig(seeds=["  https://example.com/ ", "", "   "])
        assert config.seeds == ["https://example.com/"]

    def test_backend_from_string(self):
        assert CrawlConfig(backend="Requests").backend == FetchBackend.REQUESTS
        with pytest.raises(ValueError):
            CrawlConfig(backend="curl")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"max_concurrency": 0},
            {"max_depth": -1},
            {"delay_seconds": -0.5},
            {"timeout_seconds": 0},
            {"max_retries": -1},
            {"browser_pool_size": 0},
            {"user_agent": "  "},
        ],
    )
    def test_validation(self, overrides):
        with pytest.raises(ValueError):
            CrawlConfig(**overrides)

    def test_headers_carry_user_agent(self):
        headers = CrawlConfig(user_agent="TestBot/2.0").headers_for("https://example.com/")
        assert headers["User-Agent"] == "TestBot/2.0"
        assert "Accept" in headers

    def test_from_dict_nested_sections(self):
        config = CrawlConfig.from_dict(
            {
                "seeds": "https://example.com/",
                "max_depth": "1",
                "backend": "requests",
                "link_policy": {"blocked_domains": ["ads.example.com"]},
                "extractor": {"min_paragraph_length": 10},
                "search": {"enable_fuzzy": False},
            }
        )
        assert config.seeds == ["https://example.com/"]
        assert config.max_depth == 1
        assert config.link_policy == LinkPolicy(blocked_domains=["ads.example.com"])
        assert config.extractor.min_paragraph_length == 10
        assert not config.search.enable_fuzzy

    def test_from_dict_rejects_bad_values(self):
        with pytest.raises(ValueError):
            CrawlConfig.from_dict({"respect_robots": "yes"})
        with pytest.raises(ValueError):
            CrawlConfig.from_dict({"max_depth": "deep"})
        with pytest.raises(ValueError):
            CrawlConfig.from_dict({"search": ["not", "a", "mapping"]})


class TestConfigFiles:
    @pytest.mark.parametrize("name", ["config.json", "config.yaml", "config.yml"])
    def test_round_trip(self, tmp_path, name):
        original = CrawlConfig(
            seeds=["https://example.com/"],
            max_depth=1,
            backend=FetchBackend.REQUESTS,
            link_policy=LinkPolicy(max_links_per_domain=7),
            metadata={"run": "nightly"},
        )
        path = tmp_path / name
        save_config(original, path)
        assert load_config(path).to_dict() == original.to_dict()

    def test_unsupported_suffix(self, tmp_path):
        with pytest.raises(ValueError):
            save_config(CrawlConfig(), tmp_path / "config.toml")
        with pytest.raises(ValueError):
            load_config(tmp_path / "config.ini")

    def test_empty_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path).to_dict() == CrawlConfig().to_dict()

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(path)


class TestSearchConfig:
    def test_round_trip(self):
        config = SearchConfig(default_limit=5, enable_fuzzy=False, stemming=False)
        assert SearchConfig.from_dict(config.to_dict()) == config

    def test_partial_boosts_merge_with_defaults(self):
        config = SearchConfig(boost_factors={"title": 20.0})
        assert config.boost("title") == 20.0
        assert config.boost("description") == DEFAULT_BOOST_FACTORS["description"]
        assert config.boost("unknown") == 1.0

    @pytest.mark.parametrize(
        "overrides",
        [
            {"default_limit": 0},
            {"default_limit": 50, "max_limit": 10},
            {"fuzzy_threshold": 0.0},
            {"fuzzy_threshold": 1.5},
            {"min_term_length": 5, "max_term_length": 3},
            {"freshness_weight": -1.0},
        ],
    )
    def test_validation(self, overrides):
        with pytest.raises(ValueError):
            SearchConfig(**overrides)
