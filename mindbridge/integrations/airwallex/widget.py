"""Server-side bridge to the Airwallex drop-in element.

The drop-in element itself renders in the client's browser. The browser
relays the element's ``ready``/``success``/``error`` events to the API, and
:class:`BridgeElement` replays them into the handlers registered through the
same ``init``/``create_element``/``mount``/``on``/``unmount`` surface the
browser SDK exposes.
"""
import requests
from typing import Optional, Dict, Any, Callable, List
from mindbridge.core.config import get_config, Config
from mindbridge.core.logging import get_logger

logger = get_logger(__name__)

Handler = Callable[[Dict[str, Any]], None]


class ScriptUnavailable(Exception):
    """The widget script could not be fetched on this attempt."""


class BridgeElement:
    """Handle on one drop-in element rendered in the browser."""

    def __init__(self, element_type: str, options: Dict[str, Any]):
        self.element_type = element_type
        self.options = options
        self.target: Optional[str] = None
        self._handlers: Dict[str, List[Handler]] = {}

    def mount(self, target: str) -> str:
        self.target = target
        return target

    def on(self, event_name: str, handler: Handler) -> None:
        self._handlers.setdefault(event_name, []).append(handler)

    def dispatch(self, event_name: str, detail: Optional[Dict[str, Any]] = None) -> int:
        """Replay a browser event. Returns the number of handlers invoked."""
        handlers = list(self._handlers.get(event_name, []))
        for handler in handlers:
            handler({"detail": detail or {}})
        return len(handlers)

    def unmount(self) -> None:
        self._handlers.clear()
        self.target = None


class BridgeSDK:
    """Mirror of the browser ``AirwallexComponentsSDK`` object."""

    def __init__(self, sdk_url: str):
        self.sdk_url = sdk_url
        self.init_options: Optional[Dict[str, Any]] = None

    def init(self, options: Dict[str, Any]) -> None:
        self.init_options = options

    def create_element(self, element_type: str, options: Dict[str, Any]) -> BridgeElement:
        if self.init_options is None:
            raise RuntimeError("SDK used before init()")
        return BridgeElement(element_type, options)


def load_bridge_sdk(config: Optional[Config] = None) -> BridgeSDK:
    """Confirm the widget script is being served, then return an SDK handle.

    Raises:
        ScriptUnavailable: the script URL did not answer successfully.
    """
    config = config or get_config()
    try:
        response = requests.head(config.airwallex_sdk_url, timeout=5, allow_redirects=True)
    except requests.exceptions.RequestException as e:
        raise ScriptUnavailable(str(e))

    if response.status_code >= 400:
        raise ScriptUnavailable(f"Script URL returned {response.status_code}")

    return BridgeSDK(config.airwallex_sdk_url)
