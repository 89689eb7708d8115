import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from beanie.odm.fields import PydanticObjectId
from bson import ObjectId


def convert_objectid(obj):
    """Convert ObjectId fields to strings and datetimes to ISO strings."""
    if isinstance(obj, dict):
        return {key: convert_objectid(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [convert_objectid(item) for item in obj]
    elif isinstance(obj, (PydanticObjectId, ObjectId)):
        return str(obj)
    elif isinstance(obj, datetime):
        return obj.isoformat()
    return obj


def _dump(document) -> Dict[str, Any]:
    data = document.model_dump(by_alias=False)
    data["id"] = str(document.id) if document.id is not None else None
    data.pop("revision_id", None)
    return convert_objectid(data)


def build_document_response(document, signature=None) -> Dict[str, Any]:
    response = _dump(document)
    response["is_minted"] = document.is_minted
    if signature is not None:
        response["signature"] = build_signature_response(signature)
    return response


def build_signature_response(signature) -> Dict[str, Any]:
    response = _dump(signature)
    response["is_co_signed"] = signature.is_co_signed
    return response


def build_tracking_response(row) -> Dict[str, Any]:
    return _dump(row)


def build_payment_response(payment) -> Dict[str, Any]:
    return _dump(payment)


def build_wallet_response(wallet) -> Dict[str, Any]:
    response = _dump(wallet)
    response.pop("version", None)
    return response


def build_paginated_response(results: List[Dict[str, Any]], page: int, limit: int, total: int) -> Dict[str, Any]:
    return {
        "results": results,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "total_results": total,
    }


def page_bounds(page: Optional[int], limit: Optional[int], default_limit: int = 10, max_limit: int = 100):
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or default_limit), 1), max_limit)
    return page, limit, (page - 1) * limit
