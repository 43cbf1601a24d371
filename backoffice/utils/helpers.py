from typing import Any, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel


def to_document(record: BaseModel) -> dict:
    """Pydantic record → MongoDB document keyed by `_id`, camelCase fields."""
    doc = record.model_dump(mode="json", by_alias=True)
    if "id" in doc:
        doc["_id"] = doc.pop("id")
    return doc


def from_document(doc: dict) -> dict:
    """MongoDB document → plain dict with `id` instead of `_id`."""
    data = dict(doc)
    if "_id" in data:
        data["id"] = str(data.pop("_id"))
    return data


def dump_record(record: BaseModel) -> dict:
    """JSON-safe camelCase dict for API responses."""
    return record.model_dump(mode="json", by_alias=True)


def success_response(
    data: Optional[Any] = None,
    message: str = "Success",
    code: int = 200,
) -> JSONResponse:
    """Standard success JSON response."""
    content = {"success": True, "message": message}
    if data is not None:
        content["data"] = data
    return JSONResponse(status_code=code, content=content)


def error_response(
    message: str,
    code: int = 400,
    data: Optional[Any] = None,
) -> JSONResponse:
    """Standard error JSON response."""
    content = {"success": False, "error": {"code": code, "message": message}}
    if data is not None:
        content["data"] = data
    return JSONResponse(status_code=code, content=content)
