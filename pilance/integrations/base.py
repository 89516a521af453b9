from abc import ABC, abstractmethod

from pilance.common.logging import get_logger


class BaseIntegration(ABC):
    """Base class for external payment and identity integrations.

    Gives each client a namespaced logger and a health_check the app can
    call on demand.
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = get_logger(f"integrations.{name}")

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True when the integration is reachable."""
        ...
