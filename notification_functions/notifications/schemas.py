from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class OutcomeStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"
    QUEUED = "queued"


class NotificationKind(str, Enum):
    CHAT = "chat"
    ORDER_UPDATE = "order_update"


class DeliveryRequest(BaseModel):
    """A `notifications/{id}` document: one unit of push dispatch work"""
    model_config = ConfigDict(extra="ignore")

    recipientToken: str = ""
    title: str = ""
    body: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    status: Optional[str] = None
    recipientId: Optional[str] = None
    senderId: Optional[str] = None
    type: Optional[str] = None
    timestamp: Optional[datetime] = None

    @field_validator("recipientToken", "title", "body", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("data", mode="before")
    @classmethod
    def _none_to_empty_map(cls, value):
        return {} if value is None else value

    @property
    def is_pending(self) -> bool:
        return self.status == DeliveryStatus.PENDING.value

    def to_firestore(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class RecipientProfile(BaseModel):
    """A `users/{id}` document, read to find the recipient's push token"""
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    fcmToken: Optional[str] = None
    name: Optional[str] = None
    businessName: Optional[str] = None

    @property
    def channel_token(self) -> Optional[str]:
        """The push token with whitespace trimmed, or None when unusable"""
        if not self.fcmToken:
            return None
        token = self.fcmToken.strip()
        return token or None

    def display_name(self, default: str) -> str:
        return self.businessName or self.name or default


class DispatchOutcome(BaseModel):
    """Result of handling one trigger event"""
    status: OutcomeStatus
    messageId: Optional[str] = None
    error: Optional[str] = None
    invalidToken: bool = False
    reason: Optional[str] = None
    recordId: Optional[str] = None

    @classmethod
    def for_success(cls, message_id: str) -> "DispatchOutcome":
        return cls(status=OutcomeStatus.SENT, messageId=message_id)

    @classmethod
    def for_failure(cls, error: str, invalid_token: bool = False) -> "DispatchOutcome":
        return cls(status=OutcomeStatus.FAILED, error=error, invalidToken=invalid_token)

    @classmethod
    def for_skip(cls, reason: str) -> "DispatchOutcome":
        return cls(status=OutcomeStatus.SKIPPED, reason=reason)

    @classmethod
    def for_queued(cls, record_id: str) -> "DispatchOutcome":
        return cls(status=OutcomeStatus.QUEUED, recordId=record_id)

    @property
    def is_sent(self) -> bool:
        return self.status == OutcomeStatus.SENT

    @property
    def is_failed(self) -> bool:
        return self.status == OutcomeStatus.FAILED

    @property
    def is_skipped(self) -> bool:
        return self.status == OutcomeStatus.SKIPPED


class PlatformHints(BaseModel):
    """Android and APNs presentation settings attached to a push message"""
    model_config = ConfigDict(frozen=True)

    android_channel_id: str
    android_color: str
    android_icon: str = "@mipmap/ic_launcher"
    android_priority: str = "high"
    android_notification_priority: str = "high"
    apns_category: str
    apns_sound: str = "notification_sound.aiff"
    apns_badge: int = 1


CHAT_HINTS = PlatformHints(
    android_channel_id="chat_notifications",
    android_color="#4CAF50",
    apns_category="chat_message",
)

ORDER_HINTS = PlatformHints(
    android_channel_id="order_notifications",
    android_color="#2196F3",
    apns_category="order_update",
)


class CreationEvent(BaseModel):
    """A DeliveryRequest document was created"""
    kind: Literal["creation"] = "creation"
    recordId: str
    record: DeliveryRequest


class StatusTransitionEvent(BaseModel):
    """A chat (order) document was updated; before and after images attached"""
    kind: Literal["status_transition"] = "status_transition"
    recordId: str
    before: Dict[str, Any] = Field(default_factory=dict)
    after: Dict[str, Any] = Field(default_factory=dict)

    @property
    def status_changed(self) -> bool:
        return self.before.get("status") != self.after.get("status")


class ChatMessageEvent(BaseModel):
    """A message document was created under `chats/{parentId}/messages`"""
    kind: Literal["chat_message"] = "chat_message"
    recordId: str
    parentId: str
    message: Dict[str, Any] = Field(default_factory=dict)


TriggerEvent = Annotated[
    Union[CreationEvent, StatusTransitionEvent, ChatMessageEvent],
    Field(discriminator="kind"),
]
