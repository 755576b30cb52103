"""Domain records shared by the engine, the tools and the storage layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from handoff_bot.core.types import ContentType, Direction, Handler, Intent, KnowledgeKind, Platform


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp, returning None for anything unusable."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class HandoffMetadata:
    """Orchestration side-channel persisted next to a conversation.

    Stored as the conversation's JSON ``ai_context`` blob; only the
    handoff controller mutates it.
    """

    failed_attempts: int = 0
    handoff_at: Optional[datetime] = None
    handoff_reason: Optional[str] = None

    @classmethod
    def from_json(cls, raw: Any) -> HandoffMetadata:
        """Validate a stored blob. Bad values degrade to defaults instead of raising."""
        if not isinstance(raw, dict):
            return cls()
        try:
            failed = int(raw.get("failedAttempts") or 0)
        except (TypeError, ValueError):
            failed = 0
        reason = raw.get("handoffReason")
        return cls(
            failed_attempts=max(failed, 0),
            handoff_at=_parse_timestamp(raw.get("handoffAt")),
            handoff_reason=reason if isinstance(reason, str) else None,
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "failedAttempts": self.failed_attempts,
            "handoffAt": self.handoff_at.isoformat() if self.handoff_at else None,
            "handoffReason": self.handoff_reason,
        }


@dataclass
class ConversationState:
    id: str
    tenant_id: str
    customer_id: str
    channel_ref: str = ""
    store_id: Optional[str] = None
    customer_name: Optional[str] = None
    handler: Handler = Handler.AI
    message_count: int = 0
    handoff: HandoffMetadata = field(default_factory=HandoffMetadata)
    sandbox: bool = False  # sandbox runs never persist or emit events


@dataclass(frozen=True, slots=True)
class Channel:
    id: str
    platform: Platform
    store_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class InboundMessage:
    id: str
    conversation_id: str
    direction: Direction
    content_type: ContentType
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True, slots=True)
class Turn:
    """One prior conversation turn as seen by the model."""

    role: str  # "user" | "assistant"
    content: str


@dataclass
class KnowledgeEntry:
    tenant_id: str
    title: str
    content: str
    kind: KnowledgeKind = KnowledgeKind.ARTICLE
    category: str = "general"
    priority: int = 10  # lower = higher priority
    is_active: bool = True
    answer: Optional[str] = None
    keywords: list[str] = field(default_factory=list)
    id: Optional[int] = None


@dataclass
class Order:
    store_id: str
    external_order_id: str
    status: str
    total_amount: float = 0.0
    currency: str = "SAR"
    tenant_id: Optional[str] = None
    reference_id: Optional[str] = None
    shipping_info: Optional[dict[str, Any]] = None
    items: list[dict[str, Any]] = field(default_factory=list)
    id: Optional[int] = None


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A function call requested by the model. ``arguments`` is raw JSON text."""

    id: str
    name: str
    arguments: str = "{}"


@dataclass(frozen=True, slots=True)
class ToolResult:
    tool_call_id: str
    name: str
    result: dict[str, Any]


@dataclass
class OrchestrationResult:
    """The only value returned from one orchestration cycle. Never persisted."""

    reply: str
    confidence: float
    should_handoff: bool = False
    intent: Optional[str] = None
    handoff_reason: Optional[str] = None
    tools_used: list[str] = field(default_factory=list)

    @classmethod
    def silenced(cls) -> OrchestrationResult:
        return cls(reply="", confidence=0.0, intent=Intent.SILENCED)

    @classmethod
    def empty(cls) -> OrchestrationResult:
        return cls(reply="", confidence=0.0)


@dataclass(frozen=True, slots=True)
class ReplyMetadata:
    intent: Optional[str]
    confidence: float
    tools_used: list[str] = field(default_factory=list)
    processing_time_ms: Optional[int] = None

    def to_json(self) -> dict[str, Any]:
        return {
            "intent": self.intent,
            "confidence": self.confidence,
            "toolsCalled": list(self.tools_used),
            "processingTime": self.processing_time_ms,
        }


@dataclass(frozen=True, slots=True)
class HandoffEvent:
    conversation_id: str
    tenant_id: str
    customer_id: str
    reason: str
    reason_label: str
    handoff_at: datetime
    customer_name: Optional[str] = None
    channel_ref: str = ""
    notify_employee_ids: list[str] = field(default_factory=list)
    notify_phones: list[str] = field(default_factory=list)
    notify_emails: list[str] = field(default_factory=list)

    @property
    def dashboard_link(self) -> str:
        return f"/dashboard/inbox/{self.conversation_id}"

    def to_payload(self) -> dict[str, Any]:
        return {
            "conversationId": self.conversation_id,
            "tenantId": self.tenant_id,
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "channel": self.channel_ref,
            "reason": self.reason,
            "reasonLabel": self.reason_label,
            "handoffAt": self.handoff_at.isoformat(),
            "dashboardLink": self.dashboard_link,
            "notifyEmployeeIds": list(self.notify_employee_ids),
            "notifyPhones": list(self.notify_phones),
            "notifyEmails": list(self.notify_emails),
        }
