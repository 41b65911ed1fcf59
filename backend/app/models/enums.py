from enum import Enum

class SessionState(str, Enum):
    OPERATING = "OPERATING"
    BLOCKED = "BLOCKED"

class ProxyOutcome(str, Enum):
    FORWARDED = "FORWARDED"
    BLOCKED = "BLOCKED"
    ERROR = "ERROR"

class ActionStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    LOOP_DETECTED = "loop_detected"

class WebhookType(str, Enum):
    SLACK = "slack"
    DISCORD = "discord"
    GENERIC = "generic"
