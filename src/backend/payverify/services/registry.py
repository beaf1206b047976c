"""
Provider adapter registry.

Read-only after construction: a lookup from provider code to adapter plus
the input-contract check that runs before any I/O.
"""

import logging
from types import MappingProxyType
from typing import Mapping, Optional, Union

from payverify.models.verification import Provider, VerificationRequest
from payverify.services.acquisition import BrowserAcquirer, DocumentFetcher
from payverify.services.adapters import ProviderAdapter, build_adapter
from payverify.services.parser import ReceiptParser
from payverify.services.providers import PROVIDERS, ProviderProfile
from payverify.utils.errors import MissingInput, UnsupportedProvider

logger = logging.getLogger(__name__)


def to_provider(code: Union[str, Provider]) -> Provider:
    """Resolve a provider code (case-insensitive) or raise UnsupportedProvider."""
    if isinstance(code, Provider):
        return code
    try:
        return Provider(str(code).strip().upper())
    except ValueError:
        raise UnsupportedProvider(f"Unsupported provider: {code}") from None


class AdapterRegistry:
    """Immutable provider -> adapter mapping."""

    def __init__(
        self,
        profiles: Optional[Mapping[Provider, ProviderProfile]] = None,
        fetcher: Optional[DocumentFetcher] = None,
        browser: Optional[BrowserAcquirer] = None,
        parser: Optional[ReceiptParser] = None
    ):
        profiles = PROVIDERS if profiles is None else profiles
        fetcher = fetcher or DocumentFetcher()
        browser = browser or BrowserAcquirer(fetcher=fetcher)
        parser = parser or ReceiptParser()

        self._adapters: Mapping[Provider, ProviderAdapter] = MappingProxyType({
            provider: build_adapter(profile, fetcher=fetcher, browser=browser, parser=parser)
            for provider, profile in profiles.items()
        })

    @property
    def adapters(self) -> Mapping[Provider, ProviderAdapter]:
        return self._adapters

    def providers(self):
        return list(self._adapters)

    def get(self, code: Union[str, Provider]) -> ProviderAdapter:
        provider = to_provider(code)
        adapter = self._adapters.get(provider)
        if adapter is None:
            raise UnsupportedProvider(f"Unsupported provider: {provider.value}")
        return adapter

    def check_contract(self, adapter: ProviderAdapter, request: VerificationRequest):
        """
        Enforce the provider's minimum input before anything is fetched.

        Raises:
            MissingInput: the request cannot satisfy the provider's contract
        """
        profile = adapter.profile
        contract = profile.contract
        name = profile.provider.value

        if request.has_file and not contract.accepts_file:
            raise MissingInput(f"{name} requires a transaction reference; receipt files are not supported")

        if not request.reference and not request.has_file:
            raise MissingInput(f"{name} requires {contract.describe()}")

        if contract.requires_suffix and not request.account_suffix:
            raise MissingInput(f"{name} requires an account suffix")
