"""Routes for inspecting and repairing the interactive form of an uploaded PDF."""

import asyncio
import logging
from io import BytesIO
from typing import Any, Dict, Optional, Tuple

import pikepdf
from fastapi import APIRouter, File, Query, UploadFile
from fastapi.responses import JSONResponse, Response
from werkzeug.utils import secure_filename

from acroform_fixup.config import get_config
from acroform_fixup.field_synthesizer import SynthesisResult
from acroform_fixup.field_tree import FieldTree
from acroform_fixup.fixup import NO_CORRECTION, Fixup, create_fields_from_widgets, fixup_from_name
from acroform_fixup.form_accessor import get_form
from acroform_fixup.orphan_scanner import scan_orphan_widgets
from acroform_fixup.pdf_objects import declared_fields

logger = logging.getLogger("acroform-fixup-forms")

router = APIRouter(prefix="/api/forms", tags=["forms"])


def _inspect_pdf(data: bytes, fixup: Fixup) -> Dict[str, Any]:
    with pikepdf.open(BytesIO(data)) as pdf:
        declared_before = len(list(declared_fields(pdf)))
        scan = scan_orphan_widgets(pdf)
        tree = get_form(pdf, fixup)
        payload = tree.to_dict()
        payload.update(
            {
                "fixup": fixup.name,
                "declaredFieldCount": declared_before,
                "widgetCount": scan.widget_count,
                "orphanWidgetCount": scan.orphan_count,
                "fieldNames": sorted(tree.name_index),
            }
        )
    return payload


def _repair_pdf(data: bytes) -> Tuple[bytes, SynthesisResult, FieldTree]:
    with pikepdf.open(BytesIO(data)) as pdf:
        result = create_fields_from_widgets(pdf)
        tree = get_form(pdf, NO_CORRECTION)
        output = BytesIO()
        pdf.save(output)
    return output.getvalue(), result, tree


async def _read_upload(file: UploadFile) -> Tuple[Optional[bytes], Optional[JSONResponse]]:
    if not file or not file.filename:
        return None, JSONResponse({"success": False, "error": "No file provided"}, status_code=400)
    if not file.filename.lower().endswith(".pdf"):
        return None, JSONResponse({"success": False, "error": "Only PDF files supported"}, status_code=400)

    data = await file.read()
    limit = get_config().max_upload_bytes
    if len(data) > limit:
        return None, JSONResponse(
            {"success": False, "error": f"File exceeds the {limit // (1024 * 1024)} MB upload limit"},
            status_code=413,
        )
    return data, None


@router.post("/fields")
async def inspect_form_fields(
    file: UploadFile = File(...),
    fixup: Optional[str] = Query(None),
):
    """Return the field tree of the uploaded PDF after the requested fixup."""
    try:
        selected = fixup_from_name(fixup or get_config().default_fixup)
    except ValueError as exc:
        return JSONResponse({"success": False, "error": str(exc)}, status_code=400)

    data, error = await _read_upload(file)
    if error is not None:
        return error

    try:
        payload = await asyncio.to_thread(_inspect_pdf, data, selected)
    except pikepdf.PdfError as exc:
        logger.warning("[Forms] Could not open %s: %s", file.filename, exc)
        return JSONResponse({"success": False, "error": f"Could not read PDF: {exc}"}, status_code=400)
    except Exception as exc:
        logger.exception("[Forms] Failed to inspect %s", file.filename)
        return JSONResponse({"success": False, "error": str(exc)}, status_code=500)

    payload["success"] = True
    payload["filename"] = file.filename
    return JSONResponse(payload)


@router.post("/repair")
async def repair_form_fields(file: UploadFile = File(...)):
    """Promote orphan widgets of the uploaded PDF and return the repaired document."""
    data, error = await _read_upload(file)
    if error is not None:
        return error

    try:
        repaired, result, tree = await asyncio.to_thread(_repair_pdf, data)
    except pikepdf.PdfError as exc:
        logger.warning("[Forms] Could not open %s: %s", file.filename, exc)
        return JSONResponse({"success": False, "error": f"Could not read PDF: {exc}"}, status_code=400)
    except Exception as exc:
        logger.exception("[Forms] Failed to repair %s", file.filename)
        return JSONResponse({"success": False, "error": str(exc)}, status_code=500)

    filename = secure_filename(file.filename) or "document.pdf"
    stem = filename[:-4] if filename.lower().endswith(".pdf") else filename
    logger.info(
        "[Forms] Repaired %s: %d field(s) created, %d widget(s) promoted",
        filename,
        result.fields_created,
        len(result.promoted),
    )
    return Response(
        content=repaired,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{stem}_fixed.pdf"',
            "X-Fields-Created": str(result.fields_created),
            "X-Widgets-Promoted": str(len(result.promoted)),
            "X-Field-Count": str(len(tree.root_indices)),
        },
    )
