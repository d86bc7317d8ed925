"""
Trigger Nodes - workflow entry points.

A trigger performs no external effect. It emits the seed items the
executor synthesized for it, or seeds itself when invoked without input.
"""

from __future__ import annotations

from typing import Dict, List, Type

from flowgraph.runtime.seeding import seed_items
from flowgraph.sdk.basenode import BaseNode
from flowgraph.sdk.items import Item


class TriggerNode(BaseNode):
    """
    Base trigger - emits copies of the seed items.
    """

    type = "manual"
    version = 1

    description = {
        "displayName": "Manual Trigger",
        "name": "manual",
        "icon": "fa:play",
        "group": ["trigger"],
        "description": "Starts the workflow when triggered manually",
        "version": 1,
        "inputs": [],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [],
    }

    async def execute(self) -> List[Item]:
        """Return the seed items (copied)."""
        items = self.get_input_data()
        if not items:
            items = seed_items(self.context.node, self.context.variables, self.context.mode)
        return [item.clone() for item in items]


class ManualTriggerNode(TriggerNode):
    """Manual Trigger - Start a workflow manually."""


class WebhookTriggerNode(TriggerNode):
    """Webhook - seeded with the inbound request's headers, query and body."""

    type = "webhook"

    description = {
        **TriggerNode.description,
        "displayName": "Webhook",
        "name": "webhook",
        "icon": "fa:bolt",
        "description": "Starts the workflow when an HTTP request is received",
    }

    properties = {
        "parameters": [
            {"displayName": "HTTP Method", "name": "httpMethod", "type": "options", "default": "POST",
             "options": [{"name": "GET", "value": "GET"}, {"name": "POST", "value": "POST"}]},
            {"displayName": "Path", "name": "path", "type": "string", "default": ""},
        ],
    }


class ScheduleTriggerNode(TriggerNode):
    """Schedule - seeded with the cron expression and trigger time."""

    type = "schedule"

    description = {
        **TriggerNode.description,
        "displayName": "Schedule Trigger",
        "name": "schedule",
        "icon": "fa:clock",
        "description": "Starts the workflow on a schedule",
    }

    properties = {
        "parameters": [
            {"displayName": "Cron Expression", "name": "cronExpression", "type": "string", "default": "0 * * * *"},
        ],
    }


def make_trigger(node_type: str, display_name: str, base: Type[TriggerNode] = TriggerNode) -> Type[TriggerNode]:
    """Trigger subclass that differs from base only by its type tag."""
    return type(
        f"{node_type[0].upper()}{node_type[1:]}Node",
        (base,),
        {
            "type": node_type,
            "description": {
                **base.description,
                "displayName": display_name,
                "name": node_type,
                "description": f"Starts the workflow on {display_name.lower()}",
            },
            "__module__": __name__,
        },
    )


CronTriggerNode = make_trigger("cronTrigger", "Cron Trigger", ScheduleTriggerNode)
IntervalTriggerNode = make_trigger("intervalTrigger", "Interval Trigger", ScheduleTriggerNode)
EmailTriggerNode = make_trigger("emailTrigger", "Email Trigger")
FormTriggerNode = make_trigger("formTrigger", "Form Trigger")
ChatTriggerNode = make_trigger("chatTrigger", "Chat Trigger")
FileTriggerNode = make_trigger("fileTrigger", "File Trigger")


TRIGGER_CLASSES: Dict[str, Type[TriggerNode]] = {
    "manual": ManualTriggerNode,
    "manualTrigger": ManualTriggerNode,
    "webhook": WebhookTriggerNode,
    "schedule": ScheduleTriggerNode,
    "scheduleTrigger": ScheduleTriggerNode,
    "cronTrigger": CronTriggerNode,
    "intervalTrigger": IntervalTriggerNode,
    "emailTrigger": EmailTriggerNode,
    "formTrigger": FormTriggerNode,
    "chatTrigger": ChatTriggerNode,
    "fileTrigger": FileTriggerNode,
}


__all__ = [
    "TRIGGER_CLASSES",
    "ManualTriggerNode",
    "ScheduleTriggerNode",
    "TriggerNode",
    "WebhookTriggerNode",
    "make_trigger",
]
