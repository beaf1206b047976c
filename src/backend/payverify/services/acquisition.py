"""
Document acquisition from provider receipt endpoints.

Strategies:
- DocumentFetcher: plain HTTPS request that returns the receipt PDF, or a
  server-rendered HTML page whose visible text is the receipt.
- BrowserAcquirer: a real browser loads the receipt page, then either the
  network traffic is watched for a PDF response or a download control is
  clicked and the resulting download captured.

Every wait is bounded. Library exceptions leave this module only as
classified VerificationError subclasses.
"""

import re
import time
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

import html2text
import requests
from playwright.sync_api import (
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
    sync_playwright,
)
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from payverify.config import settings
from payverify.models.verification import DocumentKind, ExtractedDocument
from payverify.utils.errors import DocumentNotAvailable, TransportError

logger = logging.getLogger(__name__)


def html_to_text(html_content: str) -> str:
    """
    Convert a receipt page to its visible text.

    Markdown artifacts html2text introduces (table pipes, separator rows,
    heading marks) are removed so labels and values sit side by side.
    """
    h = html2text.HTML2Text()
    h.ignore_links = True
    h.ignore_images = True
    h.ignore_emphasis = True
    h.body_width = 0  # Don't wrap lines

    text = h.handle(html_content)
    text = re.sub(r'(?m)^[\s|:\-]+$', ' ', text)
    text = re.sub(r'(?m)^#+\s*', '', text)
    return text.replace('|', ' ')


class DocumentFetcher:
    """Direct HTTP retrieval of provider receipts."""

    def __init__(self, timeout: Optional[float] = None, user_agent: Optional[str] = None):
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self.user_agent = user_agent or settings.BROWSER_USER_AGENT

    def fetch(self, url: str, verify_tls: bool = True) -> ExtractedDocument:
        """
        Download a receipt PDF.

        Args:
            url: Receipt URL
            verify_tls: False for providers with broken certificate chains (this call only)

        Returns:
            ExtractedDocument of kind PDF
        """
        response = self._get(url, verify_tls, accept="application/pdf")

        content_type = response.headers.get('content-type', '').lower()
        content = response.content or b''

        if not content:
            raise DocumentNotAvailable(f"Provider returned an empty document for {url}")

        if 'pdf' not in content_type and not content.startswith(b'%PDF'):
            logger.warning("Provider returned a non-PDF body", extra={
                "url": url,
                "content_type": content_type,
            })
            raise DocumentNotAvailable("Provider did not return a receipt document")

        logger.debug("Fetched receipt document", extra={
            "url": url,
            "size_bytes": len(content),
        })

        return ExtractedDocument(
            content=content,
            kind=DocumentKind.PDF,
            source_url=url,
            retrieved_at=datetime.now(timezone.utc),
        )

    def fetch_page_text(self, url: str, verify_tls: bool = True) -> ExtractedDocument:
        """
        Retrieve a server-rendered receipt page and keep its visible text.

        Returns:
            ExtractedDocument of kind RENDERED_PAGE holding UTF-8 text
        """
        response = self._get(url, verify_tls, accept="text/html")
        text = html_to_text(response.text or "")

        if not text.strip():
            raise DocumentNotAvailable(f"Receipt page for {url} has no content")

        return ExtractedDocument(
            content=text.encode('utf-8'),
            kind=DocumentKind.RENDERED_PAGE,
            source_url=url,
            retrieved_at=datetime.now(timezone.utc),
        )

    def _get(self, url: str, verify_tls: bool, accept: str) -> requests.Response:
        try:
            response = requests.get(
                url,
                headers={"User-Agent": self.user_agent, "Accept": accept},
                timeout=self.timeout,
                verify=verify_tls,
            )
        except requests.Timeout as e:
            logger.warning("Provider request timed out", extra={"url": url, "timeout": self.timeout})
            raise DocumentNotAvailable(f"Provider did not respond within {self.timeout:g}s") from e
        except requests.RequestException as e:
            logger.warning("Provider request failed", extra={"url": url, "error": str(e)})
            raise TransportError(f"Could not reach provider: {e}") from e

        if response.status_code == 404:
            raise DocumentNotAvailable("Provider has no receipt for this reference")

        if response.status_code >= 400:
            raise TransportError(f"Provider returned HTTP {response.status_code}")

        return response


class BrowserSession:
    """
    One headless browser scoped to a single acquisition call.

    Use as a context manager; browser, context and driver are released on
    every exit path.
    """

    def __init__(
        self,
        headless: bool = True,
        user_agent: Optional[str] = None,
        proxy: Optional[str] = None,
        ignore_https_errors: bool = False
    ):
        self.headless = headless
        self.user_agent = user_agent
        self.proxy = proxy
        self.ignore_https_errors = ignore_https_errors
        self.page = None
        self._playwright = None
        self._browser = None
        self._context = None

    def __enter__(self) -> 'BrowserSession':
        try:
            self._playwright = sync_playwright().start()

            launch_options = {
                "headless": self.headless,
                "args": ["--no-sandbox", "--disable-setuid-sandbox"],
            }
            if self.proxy:
                launch_options["proxy"] = {"server": self.proxy}

            self._browser = self._playwright.chromium.launch(**launch_options)
            self._context = self._browser.new_context(
                user_agent=self.user_agent,
                ignore_https_errors=self.ignore_https_errors,
                accept_downloads=True,
            )
            self.page = self._context.new_page()
        except Exception:
            self.close()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def close(self):
        for name in ('_context', '_browser'):
            resource = getattr(self, name)
            if resource is None:
                continue
            try:
                resource.close()
            except PlaywrightError:
                logger.warning("Error closing browser resource", extra={"resource": name}, exc_info=True)
            setattr(self, name, None)

        if self._playwright is not None:
            try:
                self._playwright.stop()
            except PlaywrightError:
                logger.warning("Error stopping browser driver", exc_info=True)
            self._playwright = None

        self.page = None


def default_session(verify_tls: bool = True) -> BrowserSession:
    return BrowserSession(
        headless=settings.BROWSER_HEADLESS,
        user_agent=settings.BROWSER_USER_AGENT,
        proxy=settings.BROWSER_PROXY,
        ignore_https_errors=not verify_tls,
    )


class BrowserAcquirer:
    """Retrieves receipts that only materialise after client-side scripts run."""

    def __init__(
        self,
        fetcher: Optional[DocumentFetcher] = None,
        navigation_timeout: Optional[float] = None,
        wait_timeout: Optional[float] = None,
        retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        poll_interval: float = 0.5,
        session_factory: Optional[Callable[..., BrowserSession]] = None
    ):
        self.fetcher = fetcher or DocumentFetcher()
        self.navigation_timeout = navigation_timeout if navigation_timeout is not None else settings.NAVIGATION_TIMEOUT_SECONDS
        self.wait_timeout = wait_timeout if wait_timeout is not None else settings.DOCUMENT_WAIT_TIMEOUT_SECONDS
        self.retries = retries if retries is not None else settings.NAVIGATION_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else settings.NAVIGATION_RETRY_DELAY_SECONDS
        self.poll_interval = poll_interval
        self.session_factory = session_factory or default_session

    def capture_document_response(self, url: str, verify_tls: bool = True) -> ExtractedDocument:
        """
        Load the receipt page and watch its traffic for a PDF response.

        The PDF is then downloaded directly from the observed URL. verify_tls
        applies to both the browser context and that download.

        Raises:
            DocumentNotAvailable: no PDF response within the wait timeout
        """
        with self.session_factory(verify_tls=verify_tls) as session:
            page = session.page
            captured: List[str] = []

            def on_response(response):
                content_type = response.headers.get('content-type', '')
                if 'application/pdf' in content_type.lower():
                    captured.append(response.url)

            page.on("response", on_response)
            self._navigate(page, url)

            deadline = time.monotonic() + self.wait_timeout
            while not captured and time.monotonic() < deadline:
                page.wait_for_timeout(self.poll_interval * 1000)

            if not captured:
                logger.warning("No PDF response observed", extra={
                    "url": url,
                    "wait_timeout": self.wait_timeout,
                })
                raise DocumentNotAvailable(
                    f"Receipt PDF was not produced within {self.wait_timeout:g}s"
                )

            document_url = captured[0]

        logger.debug("Observed receipt PDF response", extra={"url": url, "document_url": document_url})
        return self.fetcher.fetch(document_url, verify_tls=verify_tls)

    def capture_download(self, url: str, control_text: str, verify_tls: bool = True) -> ExtractedDocument:
        """
        Load the receipt page, click its download control and keep the file.

        The browser context only ignores certificate errors when verify_tls is False.

        Raises:
            DocumentNotAvailable: control missing or no download within the wait timeout
        """
        wait_ms = self.wait_timeout * 1000

        with self.session_factory(verify_tls=verify_tls) as session:
            page = session.page
            self._navigate(page, url)

            try:
                with page.expect_download(timeout=wait_ms) as download_info:
                    page.get_by_role("button", name=control_text).first.click(timeout=wait_ms)
                download = download_info.value
                with open(download.path(), 'rb') as f:
                    content = f.read()
            except PlaywrightTimeoutError as e:
                logger.warning("Download control produced no document", extra={
                    "url": url,
                    "control": control_text,
                    "wait_timeout": self.wait_timeout,
                })
                raise DocumentNotAvailable(
                    f"'{control_text}' did not produce a receipt within {self.wait_timeout:g}s"
                ) from e

        if not content:
            raise DocumentNotAvailable("Downloaded receipt is empty")

        return ExtractedDocument(
            content=content,
            kind=DocumentKind.PDF,
            source_url=url,
            retrieved_at=datetime.now(timezone.utc),
        )

    def _navigate(self, page, url: str):
        """
        Open the receipt page, re-navigating from scratch on network failures.

        Raises:
            DocumentNotAvailable: the page never finished loading
            TransportError: the page could not be reached
        """

        @retry(
            retry=retry_if_exception_type(PlaywrightError),
            stop=stop_after_attempt(self.retries),
            wait=wait_fixed(self.retry_delay),
            reraise=True,
            before_sleep=lambda state: logger.warning(
                "Navigation failed, retrying (attempt %d/%d)",
                state.attempt_number,
                self.retries,
            ),
        )
        def _goto():
            page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout * 1000)

        try:
            _goto()
        except PlaywrightTimeoutError as e:
            raise DocumentNotAvailable(
                f"Provider page did not load within {self.navigation_timeout:g}s"
            ) from e
        except PlaywrightError as e:
            raise TransportError(f"Could not load provider page: {e}") from e
