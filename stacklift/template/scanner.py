"""
Asset scanner.

Walks a template's Resources looking for packageable properties that hold
a local path. A property qualifies when its resource type and property path
appear in PACKAGEABLE_PROPERTIES and its value is a plain, untagged string
that is not a URL. Anything else (intrinsics, mappings, s3:// or https://
locations) is left alone.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from stacklift.errors import AssetNotFound, AssetUnreadable
from stacklift.template.nodes import MapNode, Node, Position, ScalarNode, Template, from_plain

LOG = logging.getLogger(__name__)


class AssetKind(str, Enum):
    """How a local asset is packaged."""

    ZIP = "zip"
    TEMPLATE = "template"


@dataclass(frozen=True)
class PackageableProperty:
    """
    A resource property that may name a local asset.

    `location` builds the replacement node from the uploaded object's
    bucket, key and URL.
    """

    resource_type: str
    path: tuple[str, ...]
    kind: AssetKind
    location: Callable[[str, str, str], Node]


PACKAGEABLE_PROPERTIES: tuple[PackageableProperty, ...] = (
    PackageableProperty(
        resource_type="AWS::CloudFormation::Stack",
        path=("TemplateURL",),
        kind=AssetKind.TEMPLATE,
        location=lambda bucket, key, url: ScalarNode(url),
    ),
    PackageableProperty(
        resource_type="AWS::Lambda::Function",
        path=("Code",),
        kind=AssetKind.ZIP,
        location=lambda bucket, key, url: from_plain({"S3Bucket": bucket, "S3Key": key}),
    ),
    PackageableProperty(
        resource_type="AWS::Serverless::Function",
        path=("CodeUri",),
        kind=AssetKind.ZIP,
        location=lambda bucket, key, url: from_plain({"Bucket": bucket, "Key": key}),
    ),
)

_PROPERTIES_BY_TYPE = {prop.resource_type: prop for prop in PACKAGEABLE_PROPERTIES}


@dataclass(frozen=True)
class AssetReference:
    """A local asset found at `position` in a template."""

    position: Position
    resource_id: str
    property: PackageableProperty
    local_path: Path

    @property
    def kind(self) -> AssetKind:
        return self.property.kind

    def __str__(self) -> str:
        return f"{self.resource_id}.{'.'.join(self.property.path)} -> {self.local_path}"


def scan_template(template: Template, base_dir: Path | None = None) -> list[AssetReference]:
    """
    Find local asset references in document order.

    Args:
        template: Parsed template
        base_dir: Directory relative paths are resolved against (defaults to
            the template's own directory)

    Returns:
        References in the order their resources appear in the template

    Raises:
        AssetNotFound: If a referenced path doesn't exist
        AssetUnreadable: If a referenced path can't be read
    """
    base = base_dir if base_dir is not None else template.base_dir
    resources = template.resources
    if resources is None:
        return []

    references = []
    for resource_id, resource in resources.items():
        reference = _scan_resource(resource_id, resource, base)
        if reference is not None:
            _check_readable(reference)
            references.append(reference)

    LOG.debug("found %d local asset reference(s) in %s", len(references), template.name)
    return references


def _scan_resource(resource_id: str, resource: Node, base: Path) -> AssetReference | None:
    if not isinstance(resource, MapNode):
        return None
    resource_type = resource.get("Type")
    if not isinstance(resource_type, ScalarNode) or resource_type.tag is not None:
        return None
    prop = _PROPERTIES_BY_TYPE.get(str(resource_type.value))
    if prop is None:
        return None

    node = resource.get("Properties")
    for key in prop.path:
        if not isinstance(node, MapNode):
            return None
        node = node.get(key)

    if not _is_local_path(node):
        return None
    return AssetReference(
        position=("Resources", resource_id, "Properties") + prop.path,
        resource_id=resource_id,
        property=prop,
        local_path=base / node.value,
    )


def _is_local_path(node: Node | None) -> bool:
    if not isinstance(node, ScalarNode) or node.tag is not None:
        return False
    if not isinstance(node.value, str) or not node.value:
        return False
    return "://" not in node.value


def _check_readable(reference: AssetReference) -> None:
    path = reference.local_path
    if not path.exists():
        raise AssetNotFound(path, "no such file or directory", reference.resource_id)
    if reference.kind is AssetKind.TEMPLATE and not path.is_file():
        raise AssetUnreadable(path, "nested template must be a file", reference.resource_id)
    if not (path.is_file() or path.is_dir()):
        raise AssetUnreadable(path, "not a file or directory", reference.resource_id)
    if not os.access(path, os.R_OK):
        raise AssetUnreadable(path, "permission denied", reference.resource_id)
