import os
import re
from typing import Optional

from beanie import PydanticObjectId
from bson.errors import InvalidId

from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.database.models.document_model import RequesterInfoRecord
from app.schemas.notarization_schema import RequesterInfo

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MAX_FILE_SIZE = 5 * 1024 * 1024

DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOC_TYPE = "application/msword"
ALLOWED_TYPES = ["image/jpeg", "image/png", "application/pdf", DOC_TYPE, DOCX_TYPE]
IMAGE_TYPES = ["image/jpeg", "image/png"]

EXTENSION_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".pdf": "application/pdf",
    ".doc": DOC_TYPE,
    ".docx": DOCX_TYPE,
}


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(EMAIL_PATTERN.match(email))


def to_object_id(value: str, entity: str = "Document") -> PydanticObjectId:
    try:
        return PydanticObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(f"{entity} not found")


def document_payment_amount(document) -> int:
    # copies x service price, COPY_PRICE per copy when the service has no price
    price = (document.notarization_service or {}).get("price")
    unit = int(price) if price else settings.COPY_PRICE
    return document.amount * unit


def convert_requester_info(requester_info: RequesterInfo) -> RequesterInfoRecord:
    return RequesterInfoRecord(**requester_info.model_dump(by_alias=False))


def resolve_content_type(filename: str, declared: Optional[str], contents: bytes) -> str:
    """Trust the declared type unless it is generic; then sniff magic bytes, then the extension."""
    content_type = declared or "application/octet-stream"
    if content_type not in ("application/octet-stream", "text/plain", "binary/octet-stream"):
        return content_type

    header = contents[:8]
    ext = os.path.splitext(filename or "")[1].lower()
    if header.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if header.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if header.startswith(b"%PDF"):
        return "application/pdf"
    if header.startswith(b"\xd0\xcf\x11\xe0"):
        return DOC_TYPE
    if header.startswith(b"PK\x03\x04") and ext == ".docx":
        return DOCX_TYPE
    return EXTENSION_TYPES.get(ext, content_type)


def validate_upload(filename: str, declared: Optional[str], contents: bytes, allowed=ALLOWED_TYPES) -> str:
    if not filename:
        raise ValidationError("Invalid file")
    size = len(contents)
    if size == 0:
        raise ValidationError(f"Empty file uploaded: {filename}")
    if size > MAX_FILE_SIZE:
        raise ValidationError(f"File {filename} size {size} exceeds limit of {MAX_FILE_SIZE} bytes")

    content_type = resolve_content_type(filename, declared, contents)
    if content_type not in allowed:
        raise ValidationError(f"File type {content_type} not allowed. Allowed types: {', '.join(allowed)}")
    return content_type
