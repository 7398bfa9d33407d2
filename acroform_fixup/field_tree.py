"""
Field tree model built from the declared /AcroForm /Fields array.

Field nodes live in an arena (``FieldTree.nodes``) and refer to each other by
index, so malformed /Kids graphs (cycles, shared kids) can never produce a
node that is its own ancestor. Every fully-qualified name in the tree is
unique and indexed in ``FieldTree.name_index``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set

import pikepdf

from acroform_fixup.pdf_objects import (
    ObjectKey,
    as_dictionary,
    field_type_name,
    field_value,
    is_field_node,
    is_widget,
    iter_array_items,
    object_key,
    partial_name,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "Field"


def next_free_name(base: str, taken: Set[str]) -> str:
    """``base`` when unused, else ``base_1``, ``base_2`` ... whichever is free first."""
    if base not in taken:
        return base
    counter = 1
    while f"{base}_{counter}" in taken:
        counter += 1
    return f"{base}_{counter}"


def placeholder_name(taken: Set[str]) -> str:
    """First free ``Field_<n>`` placeholder."""
    counter = 1
    while f"{PLACEHOLDER_PREFIX}_{counter}" in taken:
        counter += 1
    return f"{PLACEHOLDER_PREFIX}_{counter}"


def assign_sibling_names(names: List[Optional[str]]) -> List[str]:
    """
    Decide the partial names of one sibling set.

    Explicit names keep their order; a repeated name gets a counter suffix.
    Missing names get ``Field_<n>`` placeholders that avoid every explicit
    name of the set.
    """
    reserved = {name for name in names if name is not None}
    used: Set[str] = set()
    decided: List[Optional[str]] = []

    for name in names:
        if name is None:
            decided.append(None)
            continue
        if name in used:
            name = next_free_name(name, used | reserved)
        used.add(name)
        decided.append(name)

    result = []
    for name in decided:
        if name is None:
            name = placeholder_name(used | reserved)
            used.add(name)
        result.append(name)
    return result


@dataclass
class FieldNode:
    index: int
    partial_name: str
    fully_qualified_name: str
    obj: Any = None
    parent: Optional[int] = None
    kids: List[int] = field(default_factory=list)
    widgets: List[Any] = field(default_factory=list)
    field_type: Optional[str] = None
    value: Any = None
    synthetic_name: bool = False

    @property
    def is_terminal(self) -> bool:
        return not self.kids

    def to_dict(self, tree: "FieldTree") -> Dict[str, Any]:
        return {
            "name": self.fully_qualified_name,
            "partialName": self.partial_name,
            "type": self.field_type,
            "value": self.value,
            "widgetCount": len(self.widgets),
            "syntheticName": self.synthetic_name,
            "kids": [tree.nodes[kid].to_dict(tree) for kid in self.kids],
        }


@dataclass
class FieldTree:
    nodes: List[FieldNode] = field(default_factory=list)
    root_indices: List[int] = field(default_factory=list)
    name_index: Dict[str, int] = field(default_factory=dict)
    has_acroform: bool = True

    @property
    def roots(self) -> List[FieldNode]:
        return [self.nodes[index] for index in self.root_indices]

    @property
    def widget_count(self) -> int:
        return sum(len(node.widgets) for node in self.nodes)

    def lookup(self, fully_qualified_name: str) -> Optional[FieldNode]:
        index = self.name_index.get(fully_qualified_name)
        if index is None:
            return None
        return self.nodes[index]

    def iter_fields(self) -> Iterator[FieldNode]:
        """Depth-first, pre-order walk over every node of the tree."""
        stack = list(reversed(self.root_indices))
        while stack:
            node = self.nodes[stack.pop()]
            yield node
            stack.extend(reversed(node.kids))

    def ancestors(self, node: FieldNode) -> List[FieldNode]:
        """Ancestors of ``node`` ordered root to leaf, excluding the node itself."""
        chain = []
        current = node.parent
        while current is not None:
            chain.append(self.nodes[current])
            current = self.nodes[current].parent
        return list(reversed(chain))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hasAcroForm": self.has_acroform,
            "fieldCount": len(self.root_indices),
            "totalFieldCount": len(self.nodes),
            "widgetCount": self.widget_count,
            "fields": [node.to_dict(self) for node in self.roots],
        }


class _TreeBuilder:
    """Walks the declared field graph once and fills a FieldTree."""

    def __init__(self):
        self.tree = FieldTree()
        self.visited: Set[ObjectKey] = set()

    def build(self, fields: Iterable[Any]) -> FieldTree:
        self.tree.root_indices = self._add_siblings(list(fields), None)
        return self.tree

    def _claim(self, obj: Any) -> bool:
        """Mark an object as visited; False when it was already part of the tree."""
        key = object_key(obj)
        if key is None:
            return True
        if key in self.visited:
            return False
        self.visited.add(key)
        return True

    def _add_siblings(self, entries: List[Any], parent: Optional[FieldNode]) -> List[int]:
        candidates = []
        for entry in entries:
            node = as_dictionary(entry)
            if node is None:
                logger.debug("[FieldTree] Skipping non-dictionary field entry %r", entry)
                continue
            if not self._claim(node):
                logger.debug("[FieldTree] Skipping field %s reached twice", object_key(node))
                continue
            candidates.append(node)

        names = assign_sibling_names([partial_name(node) for node in candidates])
        indices = []
        for node, name in zip(candidates, names):
            indices.append(self._add_node(node, name, parent))
        return indices

    def _add_node(self, obj: pikepdf.Dictionary, name: str, parent: Optional[FieldNode]) -> int:
        synthetic = partial_name(obj) is None
        fq_name = f"{parent.fully_qualified_name}.{name}" if parent else name
        if fq_name in self.tree.name_index:
            # dots inside partial names can still clash with a deeper node;
            # the suffix lives in the tree only, /T is left as written
            base = name
            taken = set(self.tree.name_index)
            prefix = f"{parent.fully_qualified_name}." if parent else ""
            counter = 1
            while f"{prefix}{base}_{counter}" in taken:
                counter += 1
            name = f"{base}_{counter}"
            fq_name = f"{prefix}{name}"

        node = FieldNode(
            index=len(self.tree.nodes),
            partial_name=name,
            fully_qualified_name=fq_name,
            obj=obj,
            parent=parent.index if parent else None,
            synthetic_name=synthetic,
        )
        self.tree.nodes.append(node)
        self.tree.name_index[fq_name] = node.index

        ft = obj.get("/FT")
        node.field_type = field_type_name(ft) if ft is not None else (parent.field_type if parent else None)
        value = obj.get("/V")
        node.value = field_value(value) if value is not None else (parent.value if parent else None)

        if is_widget(obj):
            node.widgets.append(obj)

        child_fields = []
        for kid in iter_array_items(obj.get("/Kids")):
            kid_dict = as_dictionary(kid)
            if kid_dict is None:
                logger.debug("[FieldTree] Skipping non-dictionary kid of %s", fq_name)
                continue
            if is_field_node(kid_dict):
                child_fields.append(kid_dict)
                continue
            if self._claim(kid_dict):
                node.widgets.append(kid_dict)

        node.kids = self._add_siblings(child_fields, node)
        return node.index


def build_field_tree(fields: Iterable[Any], has_acroform: bool = True) -> FieldTree:
    """
    Build the field tree and its name index from a declared field list.

    Args:
        fields: The /Fields array (or any iterable of field dictionaries).
        has_acroform: Recorded on the tree so callers can tell "no form" from
            "form without fields".

    Returns:
        FieldTree whose ``roots`` follow the declared order and whose
        ``name_index`` covers every node at every depth.

    Building is read-only. Names the builder has to decide (placeholders for
    unnamed fields, suffixes for duplicate or dot-shadowed names) exist only
    in the returned tree and are not written back to /T; only the
    create-from-annotations fixup persists the names it chooses.
    """
    tree = _TreeBuilder().build(fields)
    tree.has_acroform = has_acroform
    logger.debug(
        "[FieldTree] Built tree with %d root(s), %d node(s), %d widget(s)",
        len(tree.root_indices),
        len(tree.nodes),
        tree.widget_count,
    )
    return tree
