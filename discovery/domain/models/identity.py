# discovery/domain/models/identity.py
from __future__ import annotations
import hashlib
from typing import Literal, Optional, Union

from discovery.domain.models.product import DiscoveryModel
from discovery.domain.models.views import ViewEvent


class AuthenticatedIdentity(DiscoveryModel):
    kind: Literal["authenticated"] = "authenticated"
    user_id: int

    def matches(self, event: ViewEvent) -> bool:
        return event.user_id == self.user_id

    @property
    def key(self) -> str:
        return f"u:{self.user_id}"


class AnonymousIdentity(DiscoveryModel):
    """
    (IP, user-agent) pair. Only meaningful inside the dedup window; session
    tokens are deliberately not part of it.
    """
    kind: Literal["anonymous"] = "anonymous"
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def matches(self, event: ViewEvent) -> bool:
        return event.ip_address == self.ip_address and event.user_agent == self.user_agent

    @property
    def key(self) -> str:
        raw = f"{self.ip_address or ''}|{self.user_agent or ''}"
        return "a:" + hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]


Identity = Union[AuthenticatedIdentity, AnonymousIdentity]


def resolve_identity(
    user_id: Optional[int],
    ip_address: Optional[str],
    user_agent: Optional[str],
) -> Identity:
    if user_id is not None:
        return AuthenticatedIdentity(user_id=user_id)
    return AnonymousIdentity(ip_address=ip_address, user_agent=user_agent)
