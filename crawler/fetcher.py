"""Page fetching with requests/selenium backends, a browser pool, and robots caching."""

from __future__ import annotations

from http.client import RemoteDisconnected
import logging
import queue
import threading
import time
from typing import Callable
from urllib.parse import urlsplit
from urllib.robotparser import RobotFileParser

import requests
from selenium import webdriver
from selenium.common.exceptions import (
    InvalidArgumentException,
    InvalidSessionIdException,
    NoSuchWindowException,
    TimeoutException,
    WebDriverException,
)
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.firefox.options import Options as FirefoxOptions
from urllib3.exceptions import ProtocolError

from .config import CrawlConfig
from .constants import ROBOTS_TIMEOUT_SECONDS
from .types import FetchBackend, FetchErrorKind, FetchResult
from .url import host_from_url, is_http_url


LOGGER = logging.getLogger(__name__)

TIMEOUT_ERRORS: tuple[type[BaseException], ...] = (
    requests.Timeout,
    TimeoutException,
    TimeoutError,
)
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    requests.ConnectionError,
    requests.exceptions.ChunkedEncodingError,
    ConnectionResetError,
    ProtocolError,
    RemoteDisconnected,
    InvalidSessionIdException,
    NoSuchWindowException,
)
INVALID_URL_ERRORS: tuple[type[BaseException], ...] = (
    requests.exceptions.InvalidURL,
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    InvalidArgumentException,
)
SESSION_LOST_ERRORS: tuple[type[BaseException], ...] = (
    InvalidSessionIdException,
    NoSuchWindowException,
)

DriverFactory = Callable[[CrawlConfig], object]


class BrowserUnavailableError(RuntimeError):
    """Raised when the browser pool cannot launch a browser after repeated attempts."""


def classify_exception(exc: BaseException) -> FetchErrorKind:
    """Map a fetch exception type to its error kind."""

    # requests.ConnectTimeout is both a Timeout and a ConnectionError.
    if isinstance(exc, TIMEOUT_ERRORS):
        return FetchErrorKind.TIMEOUT
    if isinstance(exc, INVALID_URL_ERRORS):
        return FetchErrorKind.INVALID_URL
    if isinstance(exc, TRANSIENT_ERRORS):
        return FetchErrorKind.TRANSIENT
    return FetchErrorKind.OTHER


def create_default_driver(config: CrawlConfig):
    """Launch headless Chrome, falling back to headless Firefox."""

    errors: list[str] = []

    try:
        chrome_options = ChromeOptions()
        chrome_options.add_argument("--headless=new")
        chrome_options.add_argument("--disable-gpu")
        chrome_options.add_argument("--no-sandbox")
        chrome_options.add_argument("--disable-dev-shm-usage")
        chrome_options.add_argument(f"--user-agent={config.user_agent}")
        return webdriver.Chrome(options=chrome_options)
    except (WebDriverException, OSError) as exc:
        errors.append(f"Chrome: {exc}")

    try:
        firefox_options = FirefoxOptions()
        firefox_options.add_argument("-headless")
        firefox_options.set_preference("general.useragent.override", config.user_agent)
        return webdriver.Firefox(options=firefox_options)
    except (WebDriverException, OSError) as exc:
        errors.append(f"Firefox: {exc}")

    raise WebDriverException("; ".join(errors) or "No usable Selenium driver found")


class BrowserPool:
    """Bounded pool of browser sessions with lazy launch and respawn.

    - At most `browser_pool_size` browsers exist at once; callers block on
      `acquire` until one is free.
    - A session that fails its health check, or is released as unhealthy,
      is quit and replaced on the next `acquire`.
    - `browser_launch_attempts` consecutive launch failures raise
      `BrowserUnavailableError`.
    """

    def __init__(
        self,
        config: CrawlConfig,
        *,
        driver_factory: DriverFactory | None = None,
    ) -> None:
        self.config = config
        self._driver_factory = driver_factory or create_default_driver

        self._available: queue.LifoQueue = queue.LifoQueue()
        self._lock = threading.Lock()
        self._created = 0
        self._closed = False

    def acquire(self):
        while True:
            try:
                driver = self._available.get_nowait()
            except queue.Empty:
                driver = None

            if driver is None:
                with self._lock:
                    if self._closed:
                        raise BrowserUnavailableError("Browser pool is closed")
                    can_launch = self._created < self.config.browser_pool_size
                    if can_launch:
                        self._created += 1
                if can_launch:
                    try:
                        return self._launch()
                    except BrowserUnavailableError:
                        with self._lock:
                            self._created -= 1
                        raise
                driver = self._available.get()

            if self._is_healthy(driver):
                return driver

            LOGGER.warning("Browser session disconnected; reinitializing")
            self._discard(driver)

    def release(self, driver, *, healthy: bool = True) -> None:
        with self._lock:
            closed = self._closed
        if healthy and not closed:
            self._available.put(driver)
            return
        self._discard(driver)

    def close(self) -> None:
        with self._lock:
            self._closed = True

        while True:
            try:
                driver = self._available.get_nowait()
            except queue.Empty:
                break
            self._discard(driver)

    @property
    def size(self) -> int:
        with self._lock:
            return self._created

    def _launch(self):
        last_error: Exception | None = None
        for attempt in range(1, self.config.browser_launch_attempts + 1):
            try:
                driver = self._driver_factory(self.config)
            except (WebDriverException, OSError) as exc:
                last_error = exc
                LOGGER.warning(
                    "Browser launch attempt %d/%d failed: %s",
                    attempt,
                    self.config.browser_launch_attempts,
                    exc,
                )
                continue
            LOGGER.info("Launched browser session (%d/%d)", self.size, self.config.browser_pool_size)
            return driver

        raise BrowserUnavailableError(
            f"Could not launch a browser after {self.config.browser_launch_attempts} attempts"
        ) from last_error

    @staticmethod
    def _is_healthy(driver) -> bool:
        try:
            driver.current_url
        except WebDriverException:
            return False
        return True

    def _discard(self, driver) -> None:
        with self._lock:
            self._created = max(0, self._created - 1)
        try:
            driver.quit()
        except WebDriverException as exc:
            LOGGER.debug("Ignoring error while quitting browser: %s", exc)


class RobotsPolicy:
    """robots.txt predicate with a per-host ruleset cache.

    Rulesets that cannot be fetched or parsed allow everything.
    """

    def __init__(
        self,
        user_agent: str,
        *,
        timeout_seconds: float = ROBOTS_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self.user_agent = user_agent
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._lock = threading.Lock()
        self._cache: dict[str, RobotFileParser | None] = {}

    def allowed(self, url: str, user_agent: str | None = None) -> bool:
        parsed = urlsplit(url)
        host_key = f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"

        with self._lock:
            cached = host_key in self._cache
            parser = self._cache.get(host_key)

        if not cached:
            parser = self._load(host_key)
            with self._lock:
                self._cache[host_key] = parser

        if parser is None:
            return True
        return parser.can_fetch(user_agent or self.user_agent or "*", url)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def _load(self, host_root: str) -> RobotFileParser | None:
        robots_url = f"{host_root}/robots.txt"

        try:
            response = self._session.get(
                robots_url,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            LOGGER.debug("robots.txt unavailable for %s: %s", host_root, exc)
            return None

        if response.status_code >= 400:
            return None

        parser = RobotFileParser()
        parser.set_url(robots_url)
        parser.parse(response.text.splitlines())
        return parser


class Fetcher:
    """Fetch pages with either the `requests` or the `selenium` backend.

    Per-URL failures come back as `FetchResult` values tagged with a
    `FetchErrorKind`; only `BrowserUnavailableError` escapes `fetch`.
    Retries are the caller's decision.

    Concurrency model:
    - Requests backend uses one session per thread.
    - Selenium backend leases one browser per fetch from a bounded pool.
    """

    def __init__(self, config: CrawlConfig, *, pool: BrowserPool | None = None) -> None:
        self.config = config
        self.backend = config.backend

        self._thread_local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

        self._rate_lock = threading.Lock()
        self._next_allowed_time_by_host: dict[str, float] = {}

        self._pool = pool
        if self._pool is None and self.backend == FetchBackend.SELENIUM:
            self._pool = BrowserPool(config)

        self._closed = False
        self._closed_lock = threading.Lock()

    def fetch(self, url: str, *, timeout: float | None = None) -> FetchResult:
        """Fetch one URL with the configured backend."""

        if not is_http_url(url):
            return FetchResult.failure(
                url,
                FetchErrorKind.INVALID_URL,
                "Invalid or unsupported URL",
                backend=self.backend,
            )

        if self._is_closed():
            return FetchResult.failure(
                url,
                FetchErrorKind.OTHER,
                "Fetcher is closed",
                backend=self.backend,
            )

        timeout_seconds = timeout or self.config.timeout_seconds
        self._wait_for_rate_limit(url)

        if self.backend == FetchBackend.SELENIUM:
            return self._fetch_selenium(url, timeout_seconds)
        return self._fetch_requests(url, timeout_seconds)

    def close(self) -> None:
        """Close fetcher resources (sessions and browsers)."""

        with self._closed_lock:
            self._closed = True

        if self._pool is not None:
            self._pool.close()

        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _is_closed(self) -> bool:
        with self._closed_lock:
            return self._closed

    def _fetch_requests(self, url: str, timeout_seconds: float) -> FetchResult:
        started = time.perf_counter()
        session = self._thread_local_session()

        try:
            response = session.get(
                url,
                headers=self.config.headers_for(url),
                timeout=timeout_seconds,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            return FetchResult.failure(
                url,
                classify_exception(exc),
                f"{exc.__class__.__name__}: {exc}",
                backend=FetchBackend.REQUESTS,
                elapsed_ms=_elapsed_ms(started),
            )

        elapsed_ms = _elapsed_ms(started)
        if not 200 <= response.status_code < 300:
            return FetchResult.failure(
                url,
                FetchErrorKind.HTTP_ERROR,
                f"HTTP {response.status_code}",
                backend=FetchBackend.REQUESTS,
                status_code=response.status_code,
                elapsed_ms=elapsed_ms,
            )

        return FetchResult(
            requested_url=url,
            final_url=response.url or url,
            status_code=response.status_code,
            html=response.text,
            backend=FetchBackend.REQUESTS,
            elapsed_ms=elapsed_ms,
        )

    def _fetch_selenium(self, url: str, timeout_seconds: float) -> FetchResult:
        pool = self._pool
        if pool is None:
            raise RuntimeError("Selenium backend has no browser pool")
        started = time.perf_counter()

        driver = pool.acquire()
        healthy = True
        try:
            driver.set_page_load_timeout(max(1, int(timeout_seconds)))
            driver.get(url)

            # Settling time for pages that hydrate content after load.
            if self.config.render_wait_seconds > 0:
                time.sleep(self.config.render_wait_seconds)

            return FetchResult(
                requested_url=url,
                final_url=driver.current_url or url,
                status_code=200,
                html=driver.page_source or "",
                backend=FetchBackend.SELENIUM,
                elapsed_ms=_elapsed_ms(started),
            )
        except WebDriverException as exc:
            healthy = not isinstance(exc, SESSION_LOST_ERRORS)
            return FetchResult.failure(
                url,
                classify_exception(exc),
                f"{exc.__class__.__name__}: {exc}",
                backend=FetchBackend.SELENIUM,
                elapsed_ms=_elapsed_ms(started),
            )
        finally:
            pool.release(driver, healthy=healthy)

    def _thread_local_session(self) -> requests.Session:
        session = getattr(self._thread_local, "session", None)
        if session is None:
            session = requests.Session()
            self._thread_local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def _wait_for_rate_limit(self, url: str) -> None:
        wait_seconds = max(0.0, self.config.per_host_delay_seconds)
        if wait_seconds <= 0:
            return

        host = host_from_url(url)

        while True:
            with self._rate_lock:
                now = time.monotonic()
                next_allowed = self._next_allowed_time_by_host.get(host, 0.0)
                if now >= next_allowed:
                    self._next_allowed_time_by_host[host] = now + wait_seconds
                    return
                sleep_for = next_allowed - now

            if sleep_for > 0:
                time.sleep(sleep_for)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


__all__ = [
    "BrowserPool",
    "BrowserUnavailableError",
    "Fetcher",
    "RobotsPolicy",
    "classify_exception",
    "create_default_driver",
]
