"""
Provider adapters.

An adapter owns the two provider-specific capabilities of the pipeline:
retrieving the receipt over the provider's transport and applying the
provider's field rules to extracted text. One adapter class exists per
transport; the provider profile supplies everything else.
"""

import logging
from typing import Any, Dict, Optional

from payverify.models.verification import ExtractedDocument
from payverify.services.acquisition import BrowserAcquirer, DocumentFetcher
from payverify.services.parser import ReceiptParser
from payverify.services.providers import ProviderProfile, Transport
from payverify.utils.errors import TransportError, VerificationError

logger = logging.getLogger(__name__)


class ProviderAdapter:
    """Uniform acquireDocument / extractFields contract over one provider."""

    transport: Transport

    def __init__(self, profile: ProviderProfile, parser: Optional[ReceiptParser] = None):
        self.profile = profile
        self.parser = parser or ReceiptParser()

    @property
    def provider(self):
        return self.profile.provider

    def acquire_document(self, reference: str, account_suffix: Optional[str] = None) -> ExtractedDocument:
        """
        Retrieve the provider's receipt for a reference.

        Anything other than a classified VerificationError raised while
        talking to the provider is reported as TransportError.
        """
        url = self.profile.build_url(reference, account_suffix)
        logger.debug("Acquiring receipt", extra={
            "provider": self.provider.value,
            "transport": self.transport.value,
            "url": url,
        })

        try:
            return self._acquire(url)
        except VerificationError:
            raise
        except Exception as e:
            logger.error("Unexpected acquisition failure", extra={
                "provider": self.provider.value,
                "url": url,
            }, exc_info=True)
            raise TransportError(f"Unexpected error retrieving receipt: {e}") from e

    def extract_fields(self, text: str) -> Dict[str, Any]:
        """Apply the provider's rule table to flattened receipt text."""
        return self.parser.parse(text, self.profile.rules, self.profile.date_formats)

    def _acquire(self, url: str) -> ExtractedDocument:
        raise NotImplementedError


class DirectDocumentAdapter(ProviderAdapter):
    """Receipt PDF served straight from a URL."""

    transport = Transport.DIRECT_DOCUMENT

    def __init__(self, profile: ProviderProfile, fetcher: Optional[DocumentFetcher] = None, **kwargs):
        super().__init__(profile, **kwargs)
        self.fetcher = fetcher or DocumentFetcher()

    def _acquire(self, url: str) -> ExtractedDocument:
        return self.fetcher.fetch(url, verify_tls=self.profile.verify_tls)


class PageTextAdapter(ProviderAdapter):
    """Receipt is a server-rendered page; its visible text is the document."""

    transport = Transport.PAGE_TEXT

    def __init__(self, profile: ProviderProfile, fetcher: Optional[DocumentFetcher] = None, **kwargs):
        super().__init__(profile, **kwargs)
        self.fetcher = fetcher or DocumentFetcher()

    def _acquire(self, url: str) -> ExtractedDocument:
        return self.fetcher.fetch_page_text(url, verify_tls=self.profile.verify_tls)


class BrowserResponseAdapter(ProviderAdapter):
    """Receipt page generates a PDF client-side; capture it from network traffic."""

    transport = Transport.BROWSER_RESPONSE

    def __init__(self, profile: ProviderProfile, browser: Optional[BrowserAcquirer] = None, **kwargs):
        super().__init__(profile, **kwargs)
        self.browser = browser or BrowserAcquirer()

    def _acquire(self, url: str) -> ExtractedDocument:
        return self.browser.capture_document_response(url, verify_tls=self.profile.verify_tls)


class BrowserDownloadAdapter(ProviderAdapter):
    """Receipt page offers a download control that builds the PDF."""

    transport = Transport.BROWSER_DOWNLOAD

    def __init__(self, profile: ProviderProfile, browser: Optional[BrowserAcquirer] = None, **kwargs):
        super().__init__(profile, **kwargs)
        self.browser = browser or BrowserAcquirer()

    def _acquire(self, url: str) -> ExtractedDocument:
        return self.browser.capture_download(
            url,
            self.profile.download_control or "Download",
            verify_tls=self.profile.verify_tls,
        )


ADAPTER_TYPES = {
    Transport.DIRECT_DOCUMENT: DirectDocumentAdapter,
    Transport.PAGE_TEXT: PageTextAdapter,
    Transport.BROWSER_RESPONSE: BrowserResponseAdapter,
    Transport.BROWSER_DOWNLOAD: BrowserDownloadAdapter,
}


def build_adapter(
    profile: ProviderProfile,
    fetcher: Optional[DocumentFetcher] = None,
    browser: Optional[BrowserAcquirer] = None,
    parser: Optional[ReceiptParser] = None
) -> ProviderAdapter:
    """Instantiate the adapter matching the profile's transport."""
    adapter_type = ADAPTER_TYPES[profile.transport]

    if adapter_type in (DirectDocumentAdapter, PageTextAdapter):
        return adapter_type(profile, fetcher=fetcher, parser=parser)
    return adapter_type(profile, browser=browser, parser=parser)
