"""
Shared fixtures for the OTP gateway tests.
"""

import pytest

from otpgate.otp.controller import OTPController
from otpgate.providers import BaseProvider, MessageTemplate, ProviderRegistry
from otpgate.store import InMemoryStore

DUMMY_NAMESPACE = "myapp"
DUMMY_SECRET = "mysecret"
DUMMY_PROVIDER = "dummyprovider"
DUMMY_OTP_ID = "myotp123"
DUMMY_TO_ADDRESS = "dummy@to.com"
DUMMY_OTP = "123456"


class DummyProvider(BaseProvider):
    """Channel that accepts one address and records every push."""

    id = DUMMY_PROVIDER
    channel_name = "dummychannel"
    description = "dummy description"
    max_otp_len = 6
    max_body_len = 100 * 1024

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def validate_address(self, to: str) -> None:
        if to != DUMMY_TO_ADDRESS:
            raise ValueError("invalid dummy to address")

    async def push(self, to: str, subject: str, body: str) -> None:
        if self.fail:
            raise RuntimeError("dummy push failed")
        self.sent.append((to, subject, body))


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryStore(clock=clock)


@pytest.fixture
def provider():
    return DummyProvider()


@pytest.fixture
def registry(provider):
    return ProviderRegistry([provider])


@pytest.fixture
def controller(store, registry):
    return OTPController(
        store=store,
        providers=registry,
        templates={DUMMY_PROVIDER: MessageTemplate(subject="test {otp}", body="test {otp}")},
        root_url="http://otp.local",
        ttl=10,
        max_attempts=3,
    )
