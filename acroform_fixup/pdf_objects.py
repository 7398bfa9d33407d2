"""
Object graph helpers for AcroForm reconciliation.

Everything the engine needs from the pikepdf object graph goes through these
helpers: dereferencing, identity keys, array iteration, the page/annotation
walk and access to the declared /AcroForm /Fields array. They never raise on
malformed input; callers receive ``None`` or an empty iterable instead.
"""

import logging
from typing import Any, Iterable, Iterator, Optional, Tuple

import pikepdf
from pikepdf import Name

logger = logging.getLogger(__name__)

ObjectKey = Tuple[int, int]

# Keys that only a field dictionary carries. A widget holding any of them is a
# merged field/widget object.
FIELD_KEYS = ("/T", "/FT", "/V", "/Ff", "/DV")

FIELD_TYPE_NAMES = {
    "/Btn": "button",
    "/Tx": "text",
    "/Ch": "choice",
    "/Sig": "signature",
}


def resolve(value: Any) -> Any:
    """Dereference indirect objects safely; return the original if not possible."""
    if value is None:
        return None

    try:
        get_obj = getattr(value, "get_object", None)
        if callable(get_obj):
            return get_obj()
    except Exception:
        return value

    return value


def object_key(obj: Any) -> Optional[ObjectKey]:
    """Identity of an indirect object as ``(num, gen)``; ``None`` for direct objects."""
    if isinstance(obj, pikepdf.Page):
        obj = obj.obj
    obj = resolve(obj)
    try:
        if not obj.is_indirect:
            return None
        num, gen = obj.objgen
    except Exception:
        return None
    if (num, gen) == (0, 0):
        return None
    return int(num), int(gen)


def iter_array_items(value: Any) -> Iterable[Any]:
    """Yield items from a pikepdf.Array or list."""
    value = resolve(value)
    if isinstance(value, list):
        return value
    if isinstance(value, pikepdf.Array):
        return value
    return ()


def as_dictionary(value: Any) -> Optional[pikepdf.Dictionary]:
    """Return the resolved value when it is a dictionary, otherwise ``None``."""
    value = resolve(value)
    if isinstance(value, pikepdf.Dictionary):
        return value
    return None


def contains_object(array: Any, obj: Any) -> bool:
    """True when ``array`` holds a reference to the same indirect object as ``obj``."""
    key = object_key(obj)
    if key is None:
        return False
    return any(object_key(item) == key for item in iter_array_items(array))


def name_of(value: Any) -> Optional[str]:
    """String form of a name or string value, ``None`` when absent."""
    value = resolve(value)
    if value is None:
        return None
    if isinstance(value, (Name, pikepdf.String, str)):
        return str(value)
    return None


def subtype_of(annot: pikepdf.Dictionary) -> Optional[str]:
    return name_of(annot.get("/Subtype"))


def is_widget(annot: Any) -> bool:
    annot = as_dictionary(annot)
    return annot is not None and subtype_of(annot) == "/Widget"


def has_field_keys(node: pikepdf.Dictionary) -> bool:
    return any(key in node for key in FIELD_KEYS)


def partial_name(node: pikepdf.Dictionary) -> Optional[str]:
    """The /T entry of a field dictionary; empty strings count as absent."""
    name = name_of(node.get("/T"))
    if not name:
        return None
    return name


def is_field_node(node: pikepdf.Dictionary) -> bool:
    """
    True when a /Kids entry is a field rather than a widget of its parent.

    Named nodes and non-widget dictionaries are fields. Only the /Kids of
    fields are part of the field hierarchy; an unnamed widget is a leaf.
    """
    return partial_name(node) is not None or not is_widget(node)


def field_type_name(value: Any) -> Optional[str]:
    """Map an /FT name to ``button``, ``text``, ``choice`` or ``signature``."""
    ft = name_of(value)
    if ft is None:
        return None
    return FIELD_TYPE_NAMES.get(ft)


def field_value(value: Any) -> Any:
    """Convert a /V entry into plain Python data."""
    value = resolve(value)
    if value is None:
        return None
    if isinstance(value, Name):
        return str(value).lstrip("/")
    if isinstance(value, pikepdf.String):
        return str(value)
    if isinstance(value, pikepdf.Array):
        return [field_value(item) for item in value]
    if isinstance(value, (bool, int, float, str)):
        return value
    try:
        return str(value)
    except Exception:
        return None


def get_acroform(pdf: pikepdf.Pdf) -> Optional[pikepdf.Dictionary]:
    return as_dictionary(pdf.Root.get("/AcroForm"))


def declared_fields(pdf: pikepdf.Pdf) -> Iterable[Any]:
    """The declared top-level field list; empty when absent or not an array."""
    acroform = get_acroform(pdf)
    if acroform is None:
        return ()
    return iter_array_items(acroform.get("/Fields"))


def ensure_fields_array(acroform: pikepdf.Dictionary) -> pikepdf.Array:
    """Return the /Fields array, creating an empty one when it is missing."""
    fields = resolve(acroform.get("/Fields"))
    if not isinstance(fields, pikepdf.Array):
        acroform.Fields = pikepdf.Array()
        fields = acroform.Fields
    return fields


def ensure_kids_array(node: pikepdf.Dictionary) -> pikepdf.Array:
    kids = resolve(node.get("/Kids"))
    if not isinstance(kids, pikepdf.Array):
        node.Kids = pikepdf.Array()
        kids = node.Kids
    return kids


def iter_page_annotations(pdf: pikepdf.Pdf) -> Iterator[Tuple[int, int, Any]]:
    """Yield ``(page_index, annotation_index, annotation)`` in page then list order."""
    for page_index, page in enumerate(pdf.pages):
        try:
            annots = page.obj.get("/Annots")
        except Exception as exc:
            logger.debug("[PdfObjects] Failed to read annotations on page %d: %s", page_index + 1, exc)
            continue
        for annot_index, annot in enumerate(iter_array_items(annots)):
            yield page_index, annot_index, annot


def page_annotations(pdf: pikepdf.Pdf, page_index: int) -> Optional[pikepdf.Array]:
    annots = resolve(pdf.pages[page_index].obj.get("/Annots"))
    if isinstance(annots, pikepdf.Array):
        return annots
    return None
