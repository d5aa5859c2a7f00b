"""
Template model, asset scanning and rewriting.
"""

from stacklift.template.nodes import (
    MapNode,
    Node,
    Position,
    ScalarNode,
    SeqNode,
    Template,
    from_plain,
    load_template,
    parse_template,
    to_plain,
)
from stacklift.template.rewriter import rewrite_template
from stacklift.template.scanner import (
    PACKAGEABLE_PROPERTIES,
    AssetKind,
    AssetReference,
    PackageableProperty,
    scan_template,
)

__all__ = [
    # Document model
    "Template",
    "Node",
    "MapNode",
    "SeqNode",
    "ScalarNode",
    "Position",
    "load_template",
    "parse_template",
    "to_plain",
    "from_plain",
    # Scanning
    "AssetKind",
    "AssetReference",
    "PackageableProperty",
    "PACKAGEABLE_PROPERTIES",
    "scan_template",
    # Rewriting
    "rewrite_template",
]
