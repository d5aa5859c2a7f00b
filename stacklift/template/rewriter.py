"""
Template rewriter.

Replaces each local asset reference with the location of its uploaded
object. The original tree is never modified: the path from the root to each
reference is rebuilt, every other subtree is shared with the original.
"""

import logging
from typing import TYPE_CHECKING, Mapping, Sequence

from stacklift.errors import RewriteRefused
from stacklift.template.nodes import MapNode, Node, Position, SeqNode, Template
from stacklift.template.scanner import AssetReference

if TYPE_CHECKING:
    from stacklift.packaging.uploader import UploadRecord

LOG = logging.getLogger(__name__)


def rewrite_template(
    template: Template,
    references: Sequence[AssetReference],
    records: Mapping[Position, "UploadRecord"],
) -> Template:
    """
    Return a copy of `template` pointing at uploaded assets.

    Args:
        template: Template the references were scanned from
        references: Output of scan_template
        records: Upload record for every reference position

    Raises:
        RewriteRefused: If any reference has no upload record
    """
    missing = [str(ref) for ref in references if ref.position not in records]
    if missing:
        raise RewriteRefused(f"no upload record for: {', '.join(missing)}")

    replacements: dict[Position, Node] = {}
    for ref in references:
        record = records[ref.position]
        replacements[ref.position] = ref.property.location(record.bucket, record.key, record.url)

    if not replacements:
        return template

    LOG.debug("rewriting %d asset reference(s) in %s", len(replacements), template.name)
    return template.with_root(_replace(template.root, (), replacements))


def _replace(node: Node, position: Position, replacements: dict[Position, Node]) -> Node:
    if position in replacements:
        return replacements[position]
    if not any(target[: len(position)] == position for target in replacements):
        return node

    if isinstance(node, MapNode):
        return MapNode(
            entries=tuple(
                (key, _replace(value, position + (key,), replacements))
                for key, value in node.entries
            ),
            tag=node.tag,
        )
    if isinstance(node, SeqNode):
        return SeqNode(
            items=tuple(
                _replace(item, position + (index,), replacements)
                for index, item in enumerate(node.items)
            ),
            tag=node.tag,
        )
    return node
