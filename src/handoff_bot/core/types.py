"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class Platform(StrEnum):
    WHATSAPP = "whatsapp"
    INSTAGRAM = "instagram"
    TELEGRAM = "telegram"
    DISCORD = "discord"


class Handler(StrEnum):
    """Who currently owns replies for a conversation."""

    AI = "ai"
    HUMAN = "human"


class Direction(StrEnum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class ContentType(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    DOCUMENT = "document"
    LOCATION = "location"


class Sender(StrEnum):
    CUSTOMER = "customer"
    AGENT = "agent"
    EMPLOYEE = "employee"


class SearchPriority(StrEnum):
    LIBRARY_ONLY = "library_only"
    LIBRARY_THEN_PRODUCTS = "library_then_products"
    PRODUCTS_ONLY = "products_only"


class KnowledgeKind(StrEnum):
    ARTICLE = "article"
    QNA = "qna"


class HandoffReason(StrEnum):
    CUSTOMER_REQUEST = "CUSTOMER_REQUEST"
    MAX_FAILURES = "MAX_FAILURES"
    LOW_CONFIDENCE = "LOW_CONFIDENCE"
    AI_ERROR = "AI_ERROR"
    AI_NOT_CONFIGURED = "AI_NOT_CONFIGURED"
    TOOL_FAILURE = "TOOL_FAILURE"
    KEYWORD_MATCH = "KEYWORD_MATCH"


class Intent(StrEnum):
    ORDER_INQUIRY = "ORDER_INQUIRY"
    PRODUCT_INQUIRY = "PRODUCT_INQUIRY"
    COMPLAINT = "COMPLAINT"
    GREETING = "GREETING"
    SILENCED = "SILENCED"
    WELCOME = "WELCOME"
    HANDOFF = "HANDOFF"
