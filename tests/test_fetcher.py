"""Tests for crawler.fetcher; no network or browser is used."""

from __future__ import annotations

from unittest.mock import MagicMock, PropertyMock

import pytest
import requests
from selenium.common.exceptions import TimeoutException, WebDriverException

from crawler.config import CrawlConfig
from crawler.fetcher import (
    BrowserPool,
    BrowserUnavailableError,
    Fetcher,
    RobotsPolicy,
    classify_exception,
)
from crawler.types import FetchBackend, FetchErrorKind


def _response(status_code=200, text="<html><title>ok</title></html>", url="https://example.com/"):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.url = url
    return response


@pytest.fixture
def requests_config():
    return CrawlConfig(backend=FetchBackend.REQUESTS, delay_seconds=0.0)


@pytest.fixture
def selenium_config():
    return CrawlConfig(
        backend=FetchBackend.SELENIUM,
        render_wait_seconds=0.0,
        browser_pool_size=1,
        browser_launch_attempts=2,
    )


class TestClassifyException:
    def test_kinds(self):
        assert classify_exception(requests.Timeout()) == FetchErrorKind.TIMEOUT
        assert classify_exception(requests.ConnectTimeout()) == FetchErrorKind.TIMEOUT
        assert classify_exception(TimeoutException()) == FetchErrorKind.TIMEOUT
        assert classify_exception(requests.ConnectionError()) == FetchErrorKind.TRANSIENT
        assert classify_exception(ConnectionResetError()) == FetchErrorKind.TRANSIENT
        assert classify_exception(requests.exceptions.MissingSchema()) == FetchErrorKind.INVALID_URL
        assert classify_exception(ValueError("boom")) == FetchErrorKind.OTHER

    def test_only_transient_is_retryable(self):
        assert [kind for kind in FetchErrorKind if kind.retryable] == [FetchErrorKind.TRANSIENT]


class TestRequestsBackend:
    def _fetcher(self, config, session):
        fetcher = Fetcher(config)
        fetcher._thread_local.session = session
        return fetcher

    def test_success(self, requests_config):
        session = MagicMock()
        session.get.return_value = _response(url="https://example.com/final")
        result = self._fetcher(requests_config, session).fetch("https://example.com/")

        assert result.ok
        assert result.final_url == "https://example.com/final"
        assert result.backend == FetchBackend.REQUESTS
        headers = session.get.call_args.kwargs["headers"]
        assert headers["User-Agent"] == requests_config.user_agent

    def test_non_2xx_is_http_error(self, requests_config):
        session = MagicMock()
        session.get.return_value = _response(status_code=404)
        result = self._fetcher(requests_config, session).fetch("https://example.com/missing")

        assert not result.ok
        assert result.error_kind == FetchErrorKind.HTTP_ERROR
        assert result.status_code == 404

    def test_connection_error_is_transient(self, requests_config):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("reset")
        result = self._fetcher(requests_config, session).fetch("https://example.com/")

        assert result.error_kind == FetchErrorKind.TRANSIENT
        assert "ConnectionError" in result.error

    def test_invalid_url_is_not_requested(self, requests_config):
        session = MagicMock()
        result = self._fetcher(requests_config, session).fetch("not-a-url")

        assert result.error_kind == FetchErrorKind.INVALID_URL
        session.get.assert_not_called()

    def test_closed_fetcher(self, requests_config):
        session = MagicMock()
        fetcher = self._fetcher(requests_config, session)
        fetcher.close()
        assert fetcher.fetch("https://example.com/").error_kind == FetchErrorKind.OTHER


class TestBrowserPool:
    def test_launch_failure_raises_after_attempts(self, selenium_config):
        factory = MagicMock(side_effect=WebDriverException("no chrome"))
        pool = BrowserPool(selenium_config, driver_factory=factory)

        with pytest.raises(BrowserUnavailableError):
            pool.acquire()
        assert factory.call_count == 2
        assert pool.size == 0

    def test_reuses_released_driver(self, selenium_config):
        driver = MagicMock()
        factory = MagicMock(return_value=driver)
        pool = BrowserPool(selenium_config, driver_factory=factory)

        first = pool.acquire()
        pool.release(first)
        assert pool.acquire() is driver
        assert factory.call_count == 1

    def test_unhealthy_driver_is_replaced(self, selenium_config):
        broken = MagicMock()
        type(broken).current_url = PropertyMock(side_effect=WebDriverException("session lost"))
        fresh = MagicMock()
        pool = BrowserPool(selenium_config, driver_factory=MagicMock(side_effect=[broken, fresh]))

        pool.release(pool.acquire())
        assert pool.acquire() is fresh
        broken.quit.assert_called_once()

    def test_close_quits_idle_drivers(self, selenium_config):
        driver = MagicMock()
        pool = BrowserPool(selenium_config, driver_factory=MagicMock(return_value=driver))
        pool.release(pool.acquire())
        pool.close()

        driver.quit.assert_called_once()
        with pytest.raises(BrowserUnavailableError):
            pool.acquire()


class TestSeleniumBackend:
    def test_success_reports_status_200(self, selenium_config):
        driver = MagicMock()
        driver.current_url = "https://example.com/"
        driver.page_source = "<html><body>rendered</body></html>"
        pool = BrowserPool(selenium_config, driver_factory=MagicMock(return_value=driver))

        result = Fetcher(selenium_config, pool=pool).fetch("https://example.com/")

        assert result.ok
        assert result.status_code == 200
        assert result.backend == FetchBackend.SELENIUM
        driver.get.assert_called_once_with("https://example.com/")

    def test_page_timeout(self, selenium_config):
        driver = MagicMock()
        driver.get.side_effect = TimeoutException("slow")
        pool = BrowserPool(selenium_config, driver_factory=MagicMock(return_value=driver))

        result = Fetcher(selenium_config, pool=pool).fetch("https://example.com/")
        assert result.error_kind == FetchErrorKind.TIMEOUT

    def test_browser_unavailable_propagates(self, selenium_config):
        pool = MagicMock()
        pool.acquire.side_effect = BrowserUnavailableError("no browser")

        with pytest.raises(BrowserUnavailableError):
            Fetcher(selenium_config, pool=pool).fetch("https://example.com/")

    def test_missing_pool_is_a_runtime_error(self, selenium_config):
        fetcher = Fetcher(selenium_config, pool=MagicMock())
        fetcher._pool = None

        with pytest.raises(RuntimeError, match="no browser pool"):
            fetcher.fetch("https://example.com/")


class TestRobotsPolicy:
    def test_rules_are_applied_and_cached(self):
        session = MagicMock()
        session.get.return_value = _response(text="User-agent: *\nDisallow: /private\n")
        policy = RobotsPolicy("TestBot/1.0", session=session)

        assert not policy.allowed("https://example.com/private/page")
        assert policy.allowed("https://example.com/public/page")
        session.get.assert_called_once()

    def test_missing_robots_allows_everything(self):
        session = MagicMock()
        session.get.return_value = _response(status_code=404, text="")
        assert RobotsPolicy("TestBot/1.0", session=session).allowed("https://example.com/private")

    def test_unreachable_robots_allows_everything(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("down")
        assert RobotsPolicy("TestBot/1.0", session=session).allowed("https://example.com/x")
