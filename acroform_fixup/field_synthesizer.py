"""
Field synthesizer: promotes orphan widget annotations to form fields.

For each orphan reported by the scanner the /Parent chain is walked upward
until it meets a field that is already part of the form (declared, or
promoted earlier in this run). Every node on the way is linked into its
parent's /Kids; a chain that never meets the form ends in a new root that is
appended to /AcroForm /Fields. Merging only ever happens by object identity.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

import pikepdf

from acroform_fixup.field_tree import next_free_name, placeholder_name
from acroform_fixup.orphan_scanner import OrphanScan, OrphanWidget
from acroform_fixup.pdf_objects import (
    ObjectKey,
    as_dictionary,
    contains_object,
    ensure_fields_array,
    ensure_kids_array,
    get_acroform,
    has_field_keys,
    is_field_node,
    iter_array_items,
    object_key,
    page_annotations,
    partial_name,
)

logger = logging.getLogger(__name__)


@dataclass
class SynthesisResult:
    new_roots: List[Any] = field(default_factory=list)
    promoted: List[Any] = field(default_factory=list)
    relinked: int = 0
    renamed: int = 0
    cycles_broken: int = 0
    fixes_applied: List[str] = field(default_factory=list)

    @property
    def fields_created(self) -> int:
        return len(self.new_roots)


class FieldSynthesizer:
    """
    Turns the orphans of an ``OrphanScan`` into fields linked into the form.

    The synthesizer mutates the document: /Kids and /Fields entries are
    appended, placeholder or disambiguated /T entries are written, direct
    widgets and parents are made indirect, and /Parent entries that close a
    cycle or point at non-dictionaries are removed.
    """

    def __init__(self, pdf: pikepdf.Pdf):
        self.pdf = pdf
        self.processed: Dict[ObjectKey, pikepdf.Dictionary] = {}
        self.declared_keys: Set[ObjectKey] = set()
        self.root_names: Set[str] = set()
        self.root_keys: Set[ObjectKey] = set()
        self.result = SynthesisResult()

    def synthesize(self, scan: OrphanScan) -> SynthesisResult:
        acroform = get_acroform(self.pdf)
        if acroform is None:
            logger.info("[FieldSynthesizer] Document has no AcroForm; nothing to attach orphans to")
            return self.result
        if not scan.orphans:
            return self.result

        fields = ensure_fields_array(acroform)
        self.declared_keys = set(scan.declared_keys)
        self.root_keys = {object_key(entry) for entry in iter_array_items(fields)} - {None}
        self.root_names = {
            name
            for name in (partial_name(entry) for entry in iter_array_items(fields) if as_dictionary(entry) is not None)
            if name
        }

        for orphan in scan.orphans:
            self._promote(orphan, fields)

        logger.info(
            "[FieldSynthesizer] Promoted %d orphan widget(s): %d new root field(s), %d relinked, %d renamed, %d cycle(s) broken",
            len(self.result.promoted),
            len(self.result.new_roots),
            self.result.relinked,
            self.result.renamed,
            self.result.cycles_broken,
        )
        return self.result

    def _log_fix(self, message: str):
        self.result.fixes_applied.append(message)
        logger.debug(f"[FieldSynthesizer] {message}")

    def _promote(self, orphan: OrphanWidget, fields: pikepdf.Array):
        widget = self._indirect_annotation(orphan)
        key = object_key(widget)
        if key in self.processed or key in self.declared_keys:
            return

        chain, anchor = self._parent_chain(widget)
        widget_is_field = has_field_keys(widget) or (len(chain) == 1 and anchor is None)

        for child, parent in zip(chain, chain[1:]):
            self._link_kid(parent, child)
        if anchor is not None:
            self._ensure_field(anchor)
            self._link_kid(anchor, chain[-1])
            self.result.relinked += 1

        # names are settled top-down so earlier orphans claim names first
        for position in range(len(chain) - 1, -1, -1):
            node = chain[position]
            if position == 0 and not widget_is_field:
                continue
            parent = chain[position + 1] if position + 1 < len(chain) else anchor
            self._settle_name(node, parent)

        if anchor is None:
            top = chain[-1]
            fields.append(top)
            self.root_keys.add(object_key(top))
            self.result.new_roots.append(top)
            self._log_fix(f"Added root field '{partial_name(top)}' to AcroForm Fields")

        for node in chain:
            node_key = object_key(node)
            if node_key is not None:
                self.processed[node_key] = node
        self.result.promoted.append(widget)

    def _indirect_annotation(self, orphan: OrphanWidget) -> pikepdf.Dictionary:
        annot = orphan.annotation
        if object_key(annot) is not None:
            return annot
        annots = page_annotations(self.pdf, orphan.page_index)
        indirect = self.pdf.make_indirect(annot)
        if annots is not None:
            annots[orphan.annotation_index] = indirect
        self._log_fix(
            f"Made widget {orphan.annotation_index} on page {orphan.page_index + 1} an indirect object"
        )
        return indirect

    def _parent_chain(self, widget: pikepdf.Dictionary) -> Tuple[List[pikepdf.Dictionary], Optional[pikepdf.Dictionary]]:
        """
        Walk /Parent upward from the widget.

        Returns the chain (widget first) of nodes that are not yet part of the
        form, and the attachment point the chain hangs from (``None`` when the
        chain top is a new root).
        """
        chain = [widget]
        visited = [object_key(widget)]
        current = widget

        while True:
            raw_parent = current.get("/Parent")
            if raw_parent is None:
                return chain, None
            parent = as_dictionary(raw_parent)
            if parent is None:
                del current["/Parent"]
                self._log_fix(f"Removed /Parent entry that is not a dictionary from '{partial_name(current)}'")
                return chain, None
            if object_key(parent) is None:
                parent = self.pdf.make_indirect(parent)
                current.Parent = parent

            parent_key = object_key(parent)
            if parent_key in self.declared_keys or parent_key in self.processed:
                return chain, parent
            if parent_key in visited:
                cut = visited.index(parent_key)
                cycle_root = chain[cut]
                del cycle_root["/Parent"]
                self.result.cycles_broken += 1
                logger.info(
                    "[FieldSynthesizer] Broke /Parent cycle at object %s; it becomes a root",
                    parent_key,
                )
                self._log_fix(f"Removed cyclic /Parent from object {parent_key}")
                return chain[: cut + 1], None

            visited.append(parent_key)
            chain.append(parent)
            current = parent

    def _ensure_field(self, anchor: pikepdf.Dictionary):
        """
        Name an unnamed widget that other nodes are attached to.

        Below the top level the field tree treats an unnamed widget as a leaf
        and never reads its /Kids, so the anchor becomes a named field under
        its own /Parent, keeping itself as its widget.
        """
        if is_field_node(anchor) or object_key(anchor) in self.root_keys:
            return
        parent = as_dictionary(anchor.get("/Parent"))
        self._settle_name(anchor, parent)
        self._log_fix(f"Promoted widget {object_key(anchor)} to a field so its kids stay in the form")

    def _link_kid(self, parent: pikepdf.Dictionary, child: pikepdf.Dictionary):
        kids = ensure_kids_array(parent)
        if not contains_object(kids, child):
            kids.append(child)
            self._log_fix(f"Linked {object_key(child)} into /Kids of {object_key(parent)}")

    def _settled_sibling_names(self, parent: pikepdf.Dictionary, node: pikepdf.Dictionary) -> Set[str]:
        """Names of the siblings of ``node`` that are already part of the form."""
        node_key = object_key(node)
        names = set()
        for kid in iter_array_items(parent.get("/Kids")):
            kid_key = object_key(kid)
            if kid_key is None or kid_key == node_key:
                continue
            if kid_key not in self.declared_keys and kid_key not in self.processed:
                continue
            kid_dict = as_dictionary(kid)
            name = partial_name(kid_dict) if kid_dict is not None else None
            if name:
                names.add(name)
        return names

    def _settle_name(self, node: pikepdf.Dictionary, parent: Optional[pikepdf.Dictionary]):
        if parent is None:
            taken = self.root_names
        else:
            taken = self._settled_sibling_names(parent, node)

        current = partial_name(node)
        if current is None:
            name = placeholder_name(taken)
            node.T = pikepdf.String(name)
            self._log_fix(f"Named unnamed field '{name}'")
        elif current in taken:
            name = next_free_name(current, taken)
            node.T = pikepdf.String(name)
            self.result.renamed += 1
            self._log_fix(f"Renamed field '{current}' to '{name}' to keep names unique")
        else:
            name = current

        if parent is None:
            self.root_names.add(name)


def promote_orphan_widgets(pdf: pikepdf.Pdf, scan: OrphanScan) -> SynthesisResult:
    return FieldSynthesizer(pdf).synthesize(scan)
