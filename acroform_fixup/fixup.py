"""
Fixup policies applied before the field tree of a document is built.

Three closed variants exist:

* ``NoCorrection`` leaves the document untouched.
* ``DefaultCorrection`` normalizes the /AcroForm dictionary but never
  promotes orphan widgets, so a deliberately empty /Fields stays empty.
* ``CustomCorrection`` runs a caller-supplied procedure with full read/write
  access to the document. ``CREATE_FROM_ANNOTATIONS`` is the built-in custom
  correction that promotes orphan widgets to fields.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

import pikepdf

from acroform_fixup.acroform_defaults import AcroFormDefaultsProcessor, harvest_widget_fonts
from acroform_fixup.field_synthesizer import FieldSynthesizer, SynthesisResult
from acroform_fixup.orphan_scanner import scan_orphan_widgets

logger = logging.getLogger(__name__)

FixupProcedure = Callable[[pikepdf.Pdf], Any]


@dataclass(frozen=True)
class NoCorrection:
    name: str = "none"


@dataclass(frozen=True)
class DefaultCorrection:
    name: str = "default"


@dataclass(frozen=True)
class CustomCorrection:
    procedure: FixupProcedure
    name: str = "custom"


Fixup = Union[NoCorrection, DefaultCorrection, CustomCorrection]

NO_CORRECTION = NoCorrection()
DEFAULT_CORRECTION = DefaultCorrection()


def create_fields_from_widgets(pdf: pikepdf.Pdf) -> SynthesisResult:
    """
    Promote every orphan widget annotation of the document to a form field.

    Runs the default normalization first, then scans the pages for widgets the
    declared field list does not reach and links them into the form. Fonts
    used by the promoted widgets' appearances are copied into the default
    resources.
    """
    AcroFormDefaultsProcessor(pdf).process()
    scan = scan_orphan_widgets(pdf)
    result = FieldSynthesizer(pdf).synthesize(scan)
    if result.promoted:
        for font_name in harvest_widget_fonts(pdf, result.promoted):
            result.fixes_applied.append(f"Added widget font {font_name} to default resources")
    return result


CREATE_FROM_ANNOTATIONS = CustomCorrection(create_fields_from_widgets, name="create")

FIXUPS_BY_NAME = {
    NO_CORRECTION.name: NO_CORRECTION,
    DEFAULT_CORRECTION.name: DEFAULT_CORRECTION,
    CREATE_FROM_ANNOTATIONS.name: CREATE_FROM_ANNOTATIONS,
}


def fixup_from_name(name: Optional[str]) -> Fixup:
    """Resolve ``none``, ``default`` or ``create`` (case-insensitive) to a fixup."""
    key = (name or DEFAULT_CORRECTION.name).strip().lower()
    try:
        return FIXUPS_BY_NAME[key]
    except KeyError:
        raise ValueError(
            f"Unknown fixup '{name}'; expected one of: {', '.join(sorted(FIXUPS_BY_NAME))}"
        ) from None


def apply_fixup(pdf: pikepdf.Pdf, fixup: Fixup) -> None:
    """
    Run the selected fixup against the document.

    Exceptions raised by a custom procedure propagate unchanged; changes it
    made before failing stay in the document.
    """
    if isinstance(fixup, NoCorrection):
        logger.debug("[Fixup] No correction requested")
        return
    if isinstance(fixup, DefaultCorrection):
        AcroFormDefaultsProcessor(pdf).process()
        return
    if isinstance(fixup, CustomCorrection):
        logger.debug("[Fixup] Running custom correction '%s'", fixup.name)
        fixup.procedure(pdf)
        return
    raise TypeError(f"Unsupported fixup {fixup!r}")
