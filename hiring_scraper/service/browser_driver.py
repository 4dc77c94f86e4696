"""
Browser automation capability consumed by the scrape engine.

The engine only talks to these two interfaces; ``chromium_service`` provides the
Playwright/CDP implementation and tests provide a scripted fake.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable

# CDP network events the capture layer subscribes to.
RESPONSE_RECEIVED = "Network.responseReceived"
LOADING_FINISHED = "Network.loadingFinished"

EventHandler = Callable[[dict[str, Any]], None]


class BrowserElement(ABC):
    @abstractmethod
    async def click(self) -> None:
        pass

    @abstractmethod
    async def select_all_text(self) -> None:
        pass

    @abstractmethod
    async def press(self, key: str) -> None:
        """Press a named key such as ``Backspace`` or ``Enter``."""

    @abstractmethod
    async def input_text(self, text: str) -> None:
        pass


class BrowserDriver(ABC):
    @abstractmethod
    async def launch(self) -> None:
        """Start the browser and open the page all other calls act on."""

    @abstractmethod
    async def navigate(self, url: str) -> None:
        pass

    @abstractmethod
    async def evaluate(self, expression: str) -> Any:
        pass

    @abstractmethod
    async def title(self) -> str:
        pass

    @abstractmethod
    async def wait_for_load(self) -> None:
        pass

    @abstractmethod
    async def find_element(self, selector: str, timeout: float) -> BrowserElement:
        """
        Locate an element, waiting up to ``timeout`` seconds.

        Raises:
            ElementNotFoundError: if nothing matches in time.
        """

    @abstractmethod
    def subscribe(self, event: str, handler: EventHandler) -> None:
        """Register a handler for a network event; handlers must not block."""

    @abstractmethod
    def unsubscribe(self, event: str, handler: EventHandler) -> None:
        pass

    @abstractmethod
    async def get_response_body(self, request_id: str) -> tuple[str, bool]:
        """Return ``(body, base64_encoded)`` for a finished request."""

    @abstractmethod
    async def close(self) -> None:
        pass
