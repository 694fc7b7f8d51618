from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List

class NotificationEvent(BaseModel):
    """One notification as delivered to a connected client.

    Built fresh for every broadcast and never mutated afterwards.
    """
    model_config = ConfigDict(frozen=True)

    type: str
    user_role: str
    payload: Dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> Dict[str, Any]:
        # type/userRole always override same-named payload keys
        return {**self.payload, "type": self.type, "userRole": self.user_role}

class BroadcastRequest(BaseModel):
    type: str = Field(min_length=1)
    role: str | None = None  # defaults to the admin role
    payload: Dict[str, Any] = Field(default_factory=dict)

class ConnectionsOut(BaseModel):
    count: int
    identities: List[int]
