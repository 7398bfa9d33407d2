"""
AcroForm default normalization.

Minimal structural repairs applied by the default fixup: a well-typed /Fields
array plus the default appearance string and default resources every
interactive form is expected to carry. No field is ever created here.
"""

import logging
from typing import Any, Iterable, List

import pikepdf
from pikepdf import Dictionary, Name

from acroform_fixup.pdf_objects import as_dictionary, get_acroform, resolve

logger = logging.getLogger(__name__)

DEFAULT_APPEARANCE = "/Helv 0 Tf 0 g "

DEFAULT_FONTS = {
    "/Helv": "/Helvetica",
    "/ZaDb": "/ZapfDingbats",
}


def _default_font(pdf: pikepdf.Pdf, resource_name: str, base_font: str) -> pikepdf.Object:
    font = Dictionary(
        Type=Name("/Font"),
        Subtype=Name("/Type1"),
        BaseFont=Name(base_font),
        Name=Name(resource_name),
    )
    if base_font == "/Helvetica":
        font.Encoding = Name("/WinAnsiEncoding")
    return pdf.make_indirect(font)


class AcroFormDefaultsProcessor:
    """
    Normalizes the /AcroForm dictionary of a document.

    Fixes implemented:
    1. /Fields present and an array (single dictionary wrapped, other values replaced)
    2. Non-dictionary /Fields entries dropped
    3. Default appearance /DA
    4. Default resources /DR with the Helvetica and ZapfDingbats fonts
    """

    def __init__(self, pdf: pikepdf.Pdf):
        self.pdf = pdf
        self.fixes_applied: List[str] = []

    def process(self) -> List[str]:
        acroform = get_acroform(self.pdf)
        if acroform is None:
            logger.debug("[AcroFormDefaults] Document has no AcroForm; nothing to normalize")
            return self.fixes_applied

        self._fix_fields_array(acroform)
        self._fix_default_appearance(acroform)
        self._fix_default_resources(acroform)
        return self.fixes_applied

    def _log_fix(self, message: str):
        self.fixes_applied.append(message)
        logger.info(f"[AcroFormDefaults] {message}")

    def _fix_fields_array(self, acroform: pikepdf.Dictionary):
        if "/Fields" not in acroform:
            acroform.Fields = pikepdf.Array()
            self._log_fix("Added empty Fields array")
            return

        fields = resolve(acroform.Fields)
        if isinstance(fields, pikepdf.Dictionary):
            acroform.Fields = pikepdf.Array([acroform.Fields])
            self._log_fix("Wrapped single field dictionary in Fields array")
            return
        if not isinstance(fields, pikepdf.Array):
            acroform.Fields = pikepdf.Array()
            self._log_fix("Replaced malformed Fields entry with empty array")
            return

        malformed = [index for index, entry in enumerate(fields) if as_dictionary(entry) is None]
        for index in reversed(malformed):
            del fields[index]
        if malformed:
            self._log_fix(f"Removed {len(malformed)} non-dictionary Fields entr{'y' if len(malformed) == 1 else 'ies'}")

    def _fix_default_appearance(self, acroform: pikepdf.Dictionary):
        if "/DA" not in acroform:
            acroform.DA = pikepdf.String(DEFAULT_APPEARANCE)
            self._log_fix(f"Set default appearance to '{DEFAULT_APPEARANCE.strip()}'")

    def _fix_default_resources(self, acroform: pikepdf.Dictionary):
        resources = as_dictionary(acroform.get("/DR"))
        if resources is None:
            acroform.DR = Dictionary()
            resources = acroform.DR
            self._log_fix("Added default resources dictionary")

        fonts = as_dictionary(resources.get("/Font"))
        if fonts is None:
            resources.Font = Dictionary()
            fonts = resources.Font

        for resource_name, base_font in DEFAULT_FONTS.items():
            if resource_name not in fonts:
                fonts[resource_name] = _default_font(self.pdf, resource_name, base_font)
                self._log_fix(f"Added {base_font.lstrip('/')} as {resource_name} to default resources")


def _appearance_streams(widget: pikepdf.Dictionary) -> Iterable[Any]:
    """Normal appearance streams of a widget, including per-state streams."""
    appearance = as_dictionary(widget.get("/AP"))
    if appearance is None:
        return []
    normal = resolve(appearance.get("/N"))
    if isinstance(normal, pikepdf.Stream):
        return [normal]
    if isinstance(normal, pikepdf.Dictionary):
        return [resolve(value) for _, value in normal.items() if isinstance(resolve(value), pikepdf.Stream)]
    return []


def harvest_widget_fonts(pdf: pikepdf.Pdf, widgets: Iterable[Any]) -> List[str]:
    """
    Copy fonts used by widget appearance streams into /AcroForm /DR /Font.

    Fonts already present under the same resource name are left untouched.
    """
    added: List[str] = []
    acroform = get_acroform(pdf)
    if acroform is None:
        return added

    resources = as_dictionary(acroform.get("/DR"))
    if resources is None:
        acroform.DR = Dictionary()
        resources = acroform.DR
    fonts = as_dictionary(resources.get("/Font"))
    if fonts is None:
        resources.Font = Dictionary()
        fonts = resources.Font

    for widget in widgets:
        widget = as_dictionary(widget)
        if widget is None:
            continue
        for stream in _appearance_streams(widget):
            stream_resources = as_dictionary(stream.get("/Resources"))
            if stream_resources is None:
                continue
            stream_fonts = as_dictionary(stream_resources.get("/Font"))
            if stream_fonts is None:
                continue
            for resource_name, font in stream_fonts.items():
                if resource_name in fonts:
                    continue
                fonts[resource_name] = font
                added.append(resource_name)
                logger.debug("[AcroFormDefaults] Copied widget font %s into default resources", resource_name)
    return added
