"""
OTP Delivery Channels
=====================
Channel contract, registry, message templates and concrete channels.
"""

from .base import BaseProvider, ProviderRegistry
from .templates import MessageTemplate
from .log import LogProvider
from .twilio import TwilioSMSProvider, validate_e164

__all__ = [
    "BaseProvider",
    "ProviderRegistry",
    "MessageTemplate",
    "LogProvider",
    "TwilioSMSProvider",
    "validate_e164",
]
