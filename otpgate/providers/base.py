"""
Delivery Channel Contract
=========================
Base class and registry for OTP delivery channels.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, Iterator, List, Mapping

import structlog

logger = structlog.get_logger(__name__)


class BaseProvider(ABC):
    """
    Abstract base class for delivery channels.

    All channel implementations (SMS, e-mail, etc.) should inherit from this.
    """

    id: str = "base"
    channel_name: str = "Base"
    description: str = ""
    max_otp_len: int = 6
    max_body_len: int = 1024

    async def initialize(self) -> None:
        """Initialize the channel (e.g., create HTTP clients)."""
        logger.info("Provider initialized", provider=self.id)

    async def close(self) -> None:
        """Clean up resources (e.g., close HTTP clients)."""
        logger.info("Provider closed", provider=self.id)

    @abstractmethod
    def validate_address(self, to: str) -> None:
        """
        Check a destination address.

        Raises:
            ValueError: If the address is not acceptable for this channel
        """

    @abstractmethod
    async def push(self, to: str, subject: str, body: str) -> None:
        """
        Transmit a rendered message.

        Args:
            to: Destination address
            subject: Message subject (ignored by channels without one)
            body: Message body

        Raises:
            ProviderError: If the message could not be sent
        """


class ProviderRegistry(Mapping[str, BaseProvider]):
    """
    Read-only mapping of channel id to provider.

    Built once at startup and never mutated afterwards.
    """

    def __init__(self, providers: Iterable[BaseProvider] = ()):
        self._providers: Dict[str, BaseProvider] = {}
        for provider in providers:
            if provider.id in self._providers:
                raise ValueError(f"Duplicate provider id: {provider.id}")
            self._providers[provider.id] = provider
            logger.info("Provider registered", provider=provider.id)

    def __getitem__(self, provider_id: str) -> BaseProvider:
        return self._providers[provider_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    def ids(self) -> List[str]:
        """List all registered channel ids."""
        return list(self._providers)

    async def initialize_all(self) -> None:
        for provider in self._providers.values():
            await provider.initialize()

    async def close_all(self) -> None:
        """Close all registered providers."""
        for provider in self._providers.values():
            await provider.close()
