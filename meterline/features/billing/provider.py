"""
Connection registry protocol.

Defines the read/write surface of the remote connection and subscription
registry. The HTTP implementation lives in registry.py; tests swap the
transport, business logic only sees this interface.
"""
from typing import Protocol, Dict, Any, List, Optional
from dataclasses import dataclass, field


LIST_PAGE_SIZE = 100


@dataclass
class ConnectionPage:
    """One page of GET /connections."""
    items: List[Dict[str, Any]] = field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = None


@dataclass(frozen=True)
class CheckoutSession:
    """Result of POST /checkout_sessions."""
    checkout_session_id: str
    checkout_session_token: str


class ConnectionRegistry(Protocol):
    """
    Protocol for the remote registry.

    Every call executes exactly once. A non-2xx answer raises UpstreamError
    carrying the remote status code and body text; nothing is retried.
    """

    async def get_connection(self, connection_id: str) -> Dict[str, Any]:
        """GET /connections/{id}"""
        ...

    async def get_connection_subscription(self, connection_id: str) -> Dict[str, Any]:
        """GET /connections/{id}/subscription"""
        ...

    async def get_subscription_config(self, subscription_config_id: str) -> Dict[str, Any]:
        """GET /subscription_configs/{id}"""
        ...

    async def list_connections(self, cursor: Optional[str] = None) -> ConnectionPage:
        """GET /connections?limit=100[&cursor=...]"""
        ...

    async def create_checkout_session(self, body: Dict[str, Any]) -> CheckoutSession:
        """POST /checkout_sessions"""
        ...
