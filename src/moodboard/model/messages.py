"""Messages posted from the OAuth popup to the window that opened it."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class OAuthMessageType(str, Enum):
    success = "OAUTH_SUCCESS"
    error = "OAUTH_ERROR"


class OAuthMessage(BaseModel):
    """
    Payload of the cross-window message sent when the OAuth popup finishes.

    The opener only acts on messages whose ``type`` is one of OAuthMessageType and whose
    origin is the application's own origin.
    """

    type: OAuthMessageType
    provider: str = "pinterest"
    error: Optional[str] = None

    @classmethod
    def success(cls, provider: str = "pinterest") -> "OAuthMessage":
        return cls(type=OAuthMessageType.success, provider=provider)

    @classmethod
    def failure(cls, error: str, provider: str = "pinterest") -> "OAuthMessage":
        return cls(type=OAuthMessageType.error, provider=provider, error=error)

    @property
    def is_success(self) -> bool:
        return self.type == OAuthMessageType.success

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
