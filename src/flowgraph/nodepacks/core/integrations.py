"""
Integration Nodes - pass-through stubs for third-party services.

None of these make an external call. Each one tags every item with
``<type>Processed: true`` so a run shows which services were visited.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Type

from flowgraph.sdk.basenode import BaseNode
from flowgraph.sdk.items import Item


logger = logging.getLogger(__name__)


# node type -> (display name, group)
INTEGRATIONS: Dict[str, tuple] = {
    # Communication
    "gmail": ("Gmail", "communication"),
    "slack": ("Slack", "communication"),
    "discord": ("Discord", "communication"),
    "telegram": ("Telegram", "communication"),
    "whatsapp": ("WhatsApp", "communication"),
    "microsoftTeams": ("Microsoft Teams", "communication"),
    "zoom": ("Zoom", "communication"),
    "twilio": ("Twilio", "communication"),
    # Productivity
    "googleCalendar": ("Google Calendar", "productivity"),
    "notion": ("Notion", "productivity"),
    "trello": ("Trello", "productivity"),
    "asana": ("Asana", "productivity"),
    "monday": ("Monday.com", "productivity"),
    "jira": ("Jira", "productivity"),
    "clickup": ("ClickUp", "productivity"),
    "airtable": ("Airtable", "productivity"),
    # Data and storage
    "googleSheets": ("Google Sheets", "data"),
    "mysql": ("MySQL", "data"),
    "postgres": ("Postgres", "data"),
    "mongodb": ("MongoDB", "data"),
    "redis": ("Redis", "data"),
    "supabase": ("Supabase", "data"),
    "awsS3": ("AWS S3", "data"),
    "googleDrive": ("Google Drive", "data"),
    # AI
    "openai": ("OpenAI", "ai"),
    "anthropic": ("Anthropic", "ai"),
    "cohere": ("Cohere", "ai"),
    "huggingFace": ("Hugging Face", "ai"),
    "embeddings": ("Embeddings", "ai"),
    "textClassifier": ("Text Classifier", "ai"),
    "sentimentAnalysis": ("Sentiment Analysis", "ai"),
    "aiAgent": ("AI Agent", "ai"),
    # Commerce
    "shopify": ("Shopify", "commerce"),
    "woocommerce": ("WooCommerce", "commerce"),
    "stripe": ("Stripe", "commerce"),
    "paypal": ("PayPal", "commerce"),
    "square": ("Square", "commerce"),
    # Marketing and CRM
    "mailchimp": ("Mailchimp", "marketing"),
    "hubspot": ("HubSpot", "marketing"),
    "salesforce": ("Salesforce", "marketing"),
    # Social
    "facebook": ("Facebook", "social"),
    "twitter": ("Twitter", "social"),
    "linkedin": ("LinkedIn", "social"),
    "googleAnalytics": ("Google Analytics", "social"),
}


class IntegrationStubNode(BaseNode):
    """
    Base for integration stubs.

    Subclasses only set ``type`` and ``description``.
    """

    type = "integration"
    version = 1

    properties = {
        "parameters": [
            {"displayName": "Operation", "name": "operation", "type": "string", "default": ""},
        ],
    }

    @property
    def marker(self) -> str:
        return f"{self.type}Processed"

    async def execute(self) -> List[Item]:
        items = self.get_input_data()
        logger.debug(f"{self.type}: simulated operation on {len(items)} item(s)")
        return [item.merged(**{self.marker: True}) for item in items]


def make_integration(node_type: str, display_name: str, group: str) -> Type[IntegrationStubNode]:
    """Build the stub class for one integration."""
    return type(
        f"{node_type[0].upper()}{node_type[1:]}Node",
        (IntegrationStubNode,),
        {
            "type": node_type,
            "description": {
                "displayName": display_name,
                "name": node_type,
                "group": [group],
                "description": f"{display_name} (simulated)",
                "version": 1,
                "inputs": ["main"],
                "outputs": ["main"],
            },
            "__module__": __name__,
        },
    )


INTEGRATION_CLASSES: Dict[str, Type[IntegrationStubNode]] = {
    node_type: make_integration(node_type, display_name, group)
    for node_type, (display_name, group) in INTEGRATIONS.items()
}


__all__ = [
    "INTEGRATIONS",
    "INTEGRATION_CLASSES",
    "IntegrationStubNode",
    "make_integration",
]
