from enum import Enum


class RealtimeEvent(str, Enum):
    """Server-to-client event names; these strings are the wire contract."""

    MESSAGE_RECEIVED = "message_received"
    AI_RESPONSE = "ai_response"
    ERROR = "error"
    PONG = "pong"
    ADMIN_MESSAGE_SENT = "admin_message_sent"
    VISITOR_COUNT = "visitor_count"
    HANDOVER_REQUEST = "handover_request"
    UPDATE_DASHBOARD = "update_dashboard"


class DashboardUpdate(str, Enum):
    NEW_MESSAGE = "new_message"
    ASSIGNED = "assigned"
    RESOLVED = "resolved"
