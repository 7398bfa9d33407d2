"""
Orphan widget scanner.

Classifies every widget annotation found on the pages against the declared
AcroForm field graph. The pass is read-only; the synthesizer consumes the
resulting orphan list.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Optional, Set, Tuple

import pikepdf

from acroform_fixup.pdf_objects import (
    ObjectKey,
    as_dictionary,
    declared_fields,
    is_field_node,
    iter_array_items,
    iter_page_annotations,
    object_key,
    subtype_of,
)

logger = logging.getLogger(__name__)


class Reachability(str, Enum):
    REACHABLE = "reachable"
    # parent chain meets the declared graph but the widget is not listed in /Kids
    DETACHED = "detached"
    UNREACHABLE = "unreachable"
    CYCLE = "cycle"


@dataclass
class OrphanWidget:
    annotation: Any
    page_index: int
    annotation_index: int
    reachability: Reachability
    anchor: Optional[Any] = None


@dataclass
class OrphanScan:
    orphans: List[OrphanWidget] = field(default_factory=list)
    declared_keys: Set[ObjectKey] = field(default_factory=set)
    widget_count: int = 0
    reachable_count: int = 0
    skipped: int = 0

    @property
    def orphan_count(self) -> int:
        return len(self.orphans)


def collect_declared_keys(fields: Iterable[Any]) -> Set[ObjectKey]:
    """
    Identity keys of every node the field tree reaches from the declared fields.

    Top-level entries are always fields. Below them only field nodes have
    their /Kids followed; an unnamed widget is a leaf, so anything hanging
    from its /Kids is not reachable.
    """
    keys: Set[ObjectKey] = set()
    stack = [(entry, True) for entry in fields]
    while stack:
        entry, follow_kids = stack.pop()
        node = as_dictionary(entry)
        if node is None:
            continue
        key = object_key(node)
        if key is not None:
            if key in keys:
                continue
            keys.add(key)
        if not follow_kids:
            continue
        for kid in iter_array_items(node.get("/Kids")):
            kid_dict = as_dictionary(kid)
            if kid_dict is not None:
                stack.append((kid_dict, is_field_node(kid_dict)))
    return keys


def classify_parent_chain(
    widget: pikepdf.Dictionary, declared_keys: Set[ObjectKey]
) -> Tuple[Reachability, Optional[pikepdf.Dictionary]]:
    """
    Follow the /Parent chain of a widget that is not itself declared.

    The walk is bounded by a visited set: a revisited node ends it with
    ``Reachability.CYCLE``.
    """
    visited: Set[ObjectKey] = set()
    key = object_key(widget)
    if key is not None:
        visited.add(key)

    current = widget
    while True:
        parent = as_dictionary(current.get("/Parent"))
        if parent is None:
            return Reachability.UNREACHABLE, None
        parent_key = object_key(parent)
        if parent_key is None:
            # direct parents cannot be listed anywhere else
            current = parent
            continue
        if parent_key in declared_keys:
            return Reachability.DETACHED, parent
        if parent_key in visited:
            return Reachability.CYCLE, None
        visited.add(parent_key)
        current = parent


def scan_orphan_widgets(pdf: pikepdf.Pdf) -> OrphanScan:
    """
    Find the widget annotations that the declared field list does not reach.

    Returns:
        OrphanScan with orphans ordered by page, then by position in /Annots.
    """
    scan = OrphanScan(declared_keys=collect_declared_keys(declared_fields(pdf)))
    seen: Set[ObjectKey] = set()

    for page_index, annot_index, entry in iter_page_annotations(pdf):
        annot = as_dictionary(entry)
        if annot is None:
            logger.debug(
                "[OrphanScanner] Page %d annotation %d is not a dictionary",
                page_index + 1,
                annot_index,
            )
            scan.skipped += 1
            continue
        subtype = subtype_of(annot)
        if subtype is None:
            logger.debug(
                "[OrphanScanner] Page %d annotation %d has no /Subtype",
                page_index + 1,
                annot_index,
            )
            scan.skipped += 1
            continue
        if subtype != "/Widget":
            continue

        key = object_key(annot)
        if key is not None:
            if key in seen:
                continue
            seen.add(key)

        scan.widget_count += 1
        if key is not None and key in scan.declared_keys:
            scan.reachable_count += 1
            continue

        reachability, anchor = classify_parent_chain(annot, scan.declared_keys)
        scan.orphans.append(
            OrphanWidget(
                annotation=annot,
                page_index=page_index,
                annotation_index=annot_index,
                reachability=reachability,
                anchor=anchor,
            )
        )

    logger.info(
        "[OrphanScanner] %d widget(s): %d reachable, %d orphan(s), %d malformed annotation(s) skipped",
        scan.widget_count,
        scan.reachable_count,
        scan.orphan_count,
        scan.skipped,
    )
    return scan
