"""
Core Node Pack Manifest - Registration function for entry-points.
"""

from flowgraph import __version__
from flowgraph.registry.models import NodePackManifest

from .flow import IfNode, MergeNode, NoOpNode, SwitchNode, WaitNode
from .http_request import HttpRequestNode
from .integrations import INTEGRATION_CLASSES
from .transform import CodeNode, SetNode
from .triggers import TRIGGER_CLASSES


# Node classes by type
NODE_CLASSES = {
    **TRIGGER_CLASSES,
    "httpRequest": HttpRequestNode,
    "code": CodeNode,
    "if": IfNode,
    "switch": SwitchNode,
    "merge": MergeNode,
    "wait": WaitNode,
    "set": SetNode,
    "noOp": NoOpNode,
    **INTEGRATION_CLASSES,
}


MANIFEST = NodePackManifest(
    name="core",
    version=__version__,
    description="Built-in triggers, flow control, transforms and integration stubs",
    author="flowgraph",
    license="MIT",
    nodes=list(NODE_CLASSES.keys()),
    entry_point="flowgraph.nodepacks.core",
)


def register_nodes():
    """
    Entry point function for node pack discovery.

    Returns tuple of (manifest, node_classes).
    """
    return MANIFEST, NODE_CLASSES


__all__ = [
    "MANIFEST",
    "NODE_CLASSES",
    "register_nodes",
]
