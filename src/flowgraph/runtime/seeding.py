"""
Trigger seeding - initial items for entry-point nodes.

Every seed item carries the run's reserved variables, the execution mode,
the originating node id and a trigger-type specific payload.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from flowgraph.sdk.expressions import RunVariables, utc_now_iso
from flowgraph.sdk.items import Item

from .models import Node


DEFAULT_CRON_EXPRESSION = "0 * * * *"


def _manual(node: Node) -> Dict[str, Any]:
    return {"manualTrigger": True, "timestamp": utc_now_iso()}


def _webhook(node: Node) -> Dict[str, Any]:
    return {
        "webhookData": "sample webhook data",
        "receivedAt": utc_now_iso(),
        "headers": {"Content-Type": "application/json"},
        "query": {},
        "body": {"test": "data"},
    }


def cron_expression(node: Node) -> str:
    """Cron expression from rule.interval[0].value, cronExpression, or hourly."""
    rule = node.parameters.get("rule") or {}
    intervals = rule.get("interval") if isinstance(rule, dict) else None
    if isinstance(intervals, list) and intervals and isinstance(intervals[0], dict):
        value = intervals[0].get("value")
        if value:
            return str(value)
    return str(node.parameters.get("cronExpression") or DEFAULT_CRON_EXPRESSION)


def _schedule(node: Node) -> Dict[str, Any]:
    return {
        "scheduledExecution": True,
        "triggerTime": utc_now_iso(),
        "cronExpression": cron_expression(node),
    }


def _email(node: Node) -> Dict[str, Any]:
    return {
        "emailReceived": True,
        "from": "example@test.com",
        "subject": "Test Email",
        "body": "This is a test email",
        "receivedAt": utc_now_iso(),
    }


def _form(node: Node) -> Dict[str, Any]:
    return {
        "formSubmitted": True,
        "formData": dict(node.parameters.get("formData") or {}),
        "submittedAt": utc_now_iso(),
    }


def _chat(node: Node) -> Dict[str, Any]:
    return {
        "chatInput": node.parameters.get("chatInput", "Hello"),
        "sessionId": node.parameters.get("sessionId", f"session_{node.id}"),
        "receivedAt": utc_now_iso(),
    }


SEED_PAYLOADS: Dict[str, Callable[[Node], Dict[str, Any]]] = {
    "manual": _manual,
    "manualTrigger": _manual,
    "webhook": _webhook,
    "schedule": _schedule,
    "scheduleTrigger": _schedule,
    "cronTrigger": _schedule,
    "intervalTrigger": _schedule,
    "emailTrigger": _email,
    "formTrigger": _form,
    "chatTrigger": _chat,
}


def seed_items(
    node: Node,
    variables: RunVariables,
    mode: str = "manual",
    payload: Optional[Dict[str, Any]] = None,
) -> List[Item]:
    """
    Build the initial item sequence for an entry-point node.

    Args:
        node: Entry-point node
        variables: Run variables snapshotted into the item
        mode: Execution mode ("manual" or "trigger")
        payload: Caller-supplied trigger data merged over the type payload
    """
    node_type = node.type.rsplit(".", 1)[-1]
    builder = SEED_PAYLOADS.get(node_type)
    if builder is not None:
        type_payload = builder(node)
    else:
        type_payload = {"triggered": True, "triggerType": node_type}

    seed: Dict[str, Any] = {
        "executionMode": mode,
        "resumeUrl": "",
        **variables.snapshot(),
        **type_payload,
    }
    if payload:
        seed.update(payload)
    seed["nodeId"] = node.id
    return [Item(json_data=seed)]


__all__ = [
    "DEFAULT_CRON_EXPRESSION",
    "SEED_PAYLOADS",
    "cron_expression",
    "seed_items",
]
