# app/handwriting_routes.py

import base64
import binascii
import json
import logging
import re
from datetime import datetime, timezone
from typing import NamedTuple, Optional

from app import storage, workflows
from app.database import records
from app.errors import ForbiddenError, NotFoundError, ValidationError
from app.models import HandwritingRecord
from app.permissions import check_permission, require_edit
from app.utils import clean_document

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r"^data:image/(?P<subtype>[a-z0-9.+-]+);base64,(?P<payload>.*)$", re.IGNORECASE | re.DOTALL)

# format -> (file extension, content type)
DRAWING_FORMATS = {
    "png": ("png", "image/png"),
    "jpeg": ("jpg", "image/jpeg"),
    "gif": ("gif", "image/gif"),
    "webp": ("webp", "image/webp"),
    "svg": ("svg", "image/svg+xml"),
    "strokes": ("json", "application/json"),
}


class Drawing(NamedTuple):
    format: str
    data: bytes

    @property
    def encoded(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @property
    def extension(self) -> str:
        return DRAWING_FORMATS[self.format][0]

    @property
    def content_type(self) -> str:
        return DRAWING_FORMATS[self.format][1]


def _invalid_drawing(message: str = "Invalid drawing data format") -> ValidationError:
    return ValidationError(message, details=[{"field": "drawingData", "message": message}])


def decode_drawing(drawing_data: str) -> Drawing:
    """
    Accepts a base64 image data URL, SVG markup or JSON stroke data
    ({"paths": [{"points": [{x, y}, ...]}]}) and returns the raw bytes with a format tag.
    Rasterizing SVG and strokes is left to the OCR workflow.
    """
    drawing_data = drawing_data.strip()

    match = DATA_URL_PATTERN.match(drawing_data)
    if match:
        subtype = match.group("subtype").lower()
        image_format = {"jpg": "jpeg", "svg+xml": "svg"}.get(subtype, subtype)
        if image_format not in DRAWING_FORMATS or image_format == "strokes":
            raise _invalid_drawing(f"Unsupported image type '{subtype}'")
        try:
            return Drawing(image_format, base64.b64decode(match.group("payload"), validate=True))
        except (binascii.Error, ValueError):
            raise _invalid_drawing("Drawing data is not valid base64")

    if drawing_data.startswith("<svg") or drawing_data.startswith("<?xml"):
        return Drawing("svg", drawing_data.encode("utf-8"))

    try:
        strokes = json.loads(drawing_data)
    except ValueError:
        raise _invalid_drawing()
    if not isinstance(strokes, dict) or not isinstance(strokes.get("paths"), list):
        raise _invalid_drawing()
    return Drawing("strokes", json.dumps(strokes).encode("utf-8"))


def _check_planner(planner_id: Optional[str], actor_id: str) -> None:
    if planner_id:
        require_edit(planner_id, actor_id)


def convert_handwriting(actor_id: str, drawing_data: str, planner_id: Optional[str] = None,
                        section_id: Optional[str] = None) -> dict:
    """
    Runs a drawing through the OCR workflow and keeps the recognized text.
    Returns {id, text, confidence}.
    """
    _check_planner(planner_id, actor_id)
    drawing = decode_drawing(drawing_data)

    result = workflows.process_handwriting(actor_id, drawing.encoded, drawing.format)
    text = result.get("text", "") if isinstance(result, dict) else ""
    confidence = result.get("confidence") if isinstance(result, dict) else None

    record = HandwritingRecord(
        userId=actor_id,
        plannerId=planner_id,
        sectionId=section_id,
        drawingData=drawing_data,
        recognizedText=text,
        confidence=confidence,
    )
    records().create(record.model_dump(mode="json", exclude_none=True))

    logger.info("Handwriting converted to text for user '%s'", actor_id)
    return {"id": record.id, "text": text, "confidence": confidence}


def save_handwriting(actor_id: str, drawing_data: str, planner_id: Optional[str] = None,
                     section_id: Optional[str] = None) -> dict:
    _check_planner(planner_id, actor_id)
    drawing = decode_drawing(drawing_data)

    stamp = int(datetime.now(timezone.utc).timestamp() * 1000)
    image_path = f"handwriting/{actor_id}/{stamp}.{drawing.extension}"
    image_url = storage.upload_file(image_path, drawing.data, drawing.content_type)

    record = HandwritingRecord(
        userId=actor_id,
        plannerId=planner_id,
        sectionId=section_id,
        drawingData=drawing_data,
        imageUrl=image_url,
        imagePath=image_path,
    )
    records().create(record.model_dump(mode="json", exclude_none=True))

    logger.info("Handwriting '%s' saved for user '%s'", record.id, actor_id)
    return {"id": record.id, "imageUrl": image_url}


def _find_record(record_id: str) -> dict:
    found = records().query("handwriting", where=[("id", "=", record_id)], limit=1)
    if not found or not found[0].get("userId") or not found[0].get("drawingData"):
        raise NotFoundError("Handwriting not found")
    return found[0]


def _can_view(record: dict, actor_id: str) -> bool:
    if record["userId"] == actor_id:
        return True
    planner_id = record.get("plannerId")
    return bool(planner_id) and check_permission(planner_id, actor_id, "view")


def get_handwriting(record_id: str, actor_id: str) -> dict:
    """Visible to its author and to anyone who can view the planner it belongs to."""
    record = _find_record(record_id)
    if not _can_view(record, actor_id):
        raise NotFoundError("Handwriting not found")
    return clean_document(record)


def delete_handwriting(record_id: str, actor_id: str) -> None:
    record = _find_record(record_id)
    if record["userId"] != actor_id:
        if not _can_view(record, actor_id):
            raise NotFoundError("Handwriting not found")
        raise ForbiddenError("Only the author can delete a drawing")

    if record.get("imagePath"):
        storage.delete_file(record["imagePath"])
    records().delete(record_id, actor_id)
    logger.info("Handwriting '%s' deleted", record_id)
