from .enums import ActionStatus, ProxyOutcome, SessionState, WebhookType
from .session import GuardSession
from .event_log import ErrorEvent, ProxyLog
from .action_log import ActionLog
from .config_tables import CostConfig, Webhook

__all__ = [
    "GuardSession",
    "ErrorEvent",
    "ProxyLog",
    "ActionLog",
    "CostConfig",
    "Webhook",
    "SessionState",
    "ProxyOutcome",
    "ActionStatus",
    "WebhookType",
]
