"""PiLance integration clients.

Clients implement ``BaseIntegration`` and fall back to mock responses when
no real credentials are configured.
"""

from pilance.integrations.base import BaseIntegration
from pilance.integrations.pi_network import PiNetworkClient

__all__ = [
    "BaseIntegration",
    "PiNetworkClient",
]
