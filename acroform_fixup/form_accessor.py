"""Entry point: run a fixup and build the resulting field tree."""

import logging
from typing import Optional

import pikepdf

from acroform_fixup.field_tree import FieldTree, build_field_tree
from acroform_fixup.fixup import DEFAULT_CORRECTION, Fixup, apply_fixup
from acroform_fixup.pdf_objects import declared_fields, get_acroform

logger = logging.getLogger(__name__)


def get_form(pdf: pikepdf.Pdf, fixup: Optional[Fixup] = DEFAULT_CORRECTION) -> FieldTree:
    """
    Return the field tree of a document after applying a fixup.

    Args:
        pdf: Open pikepdf document; it is mutated by correcting fixups.
        fixup: ``NO_CORRECTION``, ``DEFAULT_CORRECTION`` (also selected by
            ``None``) or any ``CustomCorrection``.

    Returns:
        FieldTree built from the declared /Fields array as it stands after
        the fixup ran. A document without /AcroForm yields an empty tree
        with ``has_acroform`` set to False.
    """
    if fixup is None:
        fixup = DEFAULT_CORRECTION

    apply_fixup(pdf, fixup)

    acroform = get_acroform(pdf)
    if acroform is None:
        logger.debug("[FormAccessor] Document has no AcroForm")
        return build_field_tree([], has_acroform=False)

    tree = build_field_tree(declared_fields(pdf))
    logger.info(
        "[FormAccessor] Fixup '%s' produced %d root field(s), %d field(s) in total",
        fixup.name,
        len(tree.root_indices),
        len(tree.nodes),
    )
    return tree
