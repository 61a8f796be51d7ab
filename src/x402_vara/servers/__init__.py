from .apps import Http402Server
from .config import ServerConfig
from .context import PaymentContext
from .flows import setup_event_bus

__all__ = [
    "Http402Server",
    "ServerConfig",
    "PaymentContext",
    "setup_event_bus",
]
