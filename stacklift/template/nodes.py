"""
Template document model.

A template is a tree of three node variants: MapNode, SeqNode and
ScalarNode. Nodes are frozen; edits produce new trees. Each node keeps the
local YAML tag it was written with (e.g. `!Ref`, `!Sub`) so CloudFormation
short-form intrinsics survive a load/dump cycle.
"""

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Union

import yaml

from stacklift.errors import TemplateParseError, TemplateReadError

LOG = logging.getLogger(__name__)

_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


@dataclass(frozen=True)
class ScalarNode:
    """A leaf value: string, number, boolean or null."""

    value: Any
    tag: str | None = None


@dataclass(frozen=True)
class SeqNode:
    """An ordered list of nodes."""

    items: tuple["Node", ...] = ()
    tag: str | None = None


@dataclass(frozen=True)
class MapNode:
    """An ordered mapping from string keys to nodes."""

    entries: tuple[tuple[str, "Node"], ...] = ()
    tag: str | None = None

    def get(self, key: str) -> "Node | None":
        for entry_key, value in self.entries:
            if entry_key == key:
                return value
        return None

    def keys(self) -> list[str]:
        return [key for key, _ in self.entries]

    def items(self) -> Iterator[tuple[str, "Node"]]:
        return iter(self.entries)


Node = Union[ScalarNode, SeqNode, MapNode]

# A position is the path of mapping keys and sequence indices from the root.
Position = tuple[Union[str, int], ...]


@dataclass(frozen=True)
class Template:
    """
    A parsed template and where it came from.

    `source` is None for templates read from stdin; relative asset paths are
    then resolved against the working directory.
    """

    root: Node
    source: Path | None = None
    name: str = field(default="STDIN")

    @property
    def base_dir(self) -> Path:
        if self.source is None:
            return Path.cwd()
        return self.source.parent

    @property
    def resources(self) -> MapNode | None:
        if not isinstance(self.root, MapNode):
            return None
        resources = self.root.get("Resources")
        return resources if isinstance(resources, MapNode) else None

    def with_root(self, root: Node) -> "Template":
        return Template(root=root, source=self.source, name=self.name)

    def dump(self) -> str:
        """Serialize the template back to YAML."""
        return yaml.dump(
            _to_yaml_data(self.root),
            Dumper=_TemplateDumper,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
        )

    def to_plain(self) -> Any:
        """Return the tree as plain Python data, tags rendered as `{tag: value}`."""
        return to_plain(self.root)


class _TemplateLoader(yaml.SafeLoader):
    """SafeLoader that keeps date-like scalars as strings."""
    pass


_TemplateLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


class _Tagged:
    """Carrier for a locally tagged value while dumping."""

    def __init__(self, tag: str, value: Any):
        self.tag = tag
        self.value = value


class _TemplateDumper(yaml.SafeDumper):
    pass


def _represent_tagged(dumper: yaml.SafeDumper, data: _Tagged) -> yaml.Node:
    if isinstance(data.value, dict):
        return dumper.represent_mapping(data.tag, data.value)
    if isinstance(data.value, list):
        return dumper.represent_sequence(data.tag, data.value)
    return dumper.represent_scalar(data.tag, "" if data.value is None else str(data.value))


_TemplateDumper.add_representer(_Tagged, _represent_tagged)


def parse_template(text: str, name: str = "STDIN", source: Path | None = None) -> Template:
    """
    Parse YAML or JSON template text into a Template.

    Raises:
        TemplateParseError: If the text is not a single valid document
    """
    loader = _TemplateLoader(text)
    try:
        document = loader.get_single_node()
        if document is None:
            raise TemplateParseError(name, "template is empty")
        root = _from_yaml(loader, document, name)
    except yaml.YAMLError as e:
        raise TemplateParseError(name, str(e)) from e
    finally:
        loader.dispose()

    if not isinstance(root, MapNode):
        raise TemplateParseError(name, "template must be a mapping")
    return Template(root=root, source=source, name=name)


def load_template(path: str | Path) -> Template:
    """
    Load a template from a file, or from stdin when `path` is `-`.

    Raises:
        TemplateReadError: If the file can't be read
        TemplateParseError: If the content can't be parsed
    """
    if str(path) == "-":
        LOG.debug("reading template from stdin")
        return parse_template(sys.stdin.read(), name="STDIN")

    template_path = Path(path)
    if not template_path.is_file():
        reason = "not a file" if template_path.exists() else "no such file"
        raise TemplateReadError(str(template_path), reason)
    try:
        text = template_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise TemplateReadError(str(template_path), str(e)) from e

    LOG.debug("loaded template %s (%d bytes)", template_path, len(text))
    return parse_template(text, name=str(template_path), source=template_path.resolve())


def _local_tag(node: yaml.Node) -> str | None:
    return node.tag if node.tag.startswith("!") else None


def _from_yaml(loader: yaml.SafeLoader, node: yaml.Node, name: str) -> Node:
    tag = _local_tag(node)

    if isinstance(node, yaml.MappingNode):
        entries: list[tuple[str, Node]] = []
        seen: set[str] = set()
        for key_node, value_node in node.value:
            key = _key(loader, key_node)
            if key in seen:
                raise TemplateParseError(
                    name, f"duplicate key `{key}` at line {key_node.start_mark.line + 1}"
                )
            seen.add(key)
            entries.append((key, _from_yaml(loader, value_node, name)))
        return MapNode(entries=tuple(entries), tag=tag)

    if isinstance(node, yaml.SequenceNode):
        return SeqNode(items=tuple(_from_yaml(loader, item, name) for item in node.value), tag=tag)

    if tag is not None:
        return ScalarNode(value=node.value, tag=tag)
    return ScalarNode(value=loader.construct_object(node))


def _key(loader: yaml.SafeLoader, node: yaml.Node) -> str:
    # Scalar keys are names, never YAML 1.1 booleans: `NO` stays "NO".
    if isinstance(node, yaml.ScalarNode):
        return node.value
    return str(loader.construct_object(node))


def _to_yaml_data(node: Node) -> Any:
    if isinstance(node, MapNode):
        data: Any = {key: _to_yaml_data(value) for key, value in node.entries}
    elif isinstance(node, SeqNode):
        data = [_to_yaml_data(item) for item in node.items]
    else:
        data = node.value
    return _Tagged(node.tag, data) if node.tag else data


def to_plain(node: Node) -> Any:
    """Convert a node to plain Python data."""
    if isinstance(node, MapNode):
        data: Any = {key: to_plain(value) for key, value in node.entries}
    elif isinstance(node, SeqNode):
        data = [to_plain(item) for item in node.items]
    else:
        data = node.value
    return {node.tag: data} if node.tag else data


def from_plain(data: Any) -> Node:
    """Build a node tree from plain Python data (no tags)."""
    if isinstance(data, dict):
        return MapNode(entries=tuple((str(key), from_plain(value)) for key, value in data.items()))
    if isinstance(data, (list, tuple)):
        return SeqNode(items=tuple(from_plain(item) for item in data))
    return ScalarNode(value=data)
