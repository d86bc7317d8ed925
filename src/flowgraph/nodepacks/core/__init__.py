"""
Core Node Pack - Built-in handlers.

This pack provides:
- Triggers: manual, webhook, schedule, email/form/chat/file, cron, interval
- Flow: If, Switch, Merge, Wait, NoOp
- Transform: Set, Code
- HttpRequest
- Integration stubs (gmail, slack, stripe, ...)
"""

from .flow import IfNode, MergeNode, NoOpNode, SwitchNode, WaitNode
from .http_request import HttpRequestNode
from .transform import CodeNode, SetNode
from .triggers import ManualTriggerNode, TriggerNode, WebhookTriggerNode
from .manifest import MANIFEST, NODE_CLASSES, register_nodes

__all__ = [
    "CodeNode",
    "HttpRequestNode",
    "IfNode",
    "ManualTriggerNode",
    "MergeNode",
    "NoOpNode",
    "SetNode",
    "SwitchNode",
    "TriggerNode",
    "WaitNode",
    "WebhookTriggerNode",
    "MANIFEST",
    "NODE_CLASSES",
    "register_nodes",
]
