"""JSON helpers shared by the API, the summary cache and realtime payloads."""
import enum
import json
from datetime import datetime, date
from decimal import Decimal
from typing import Any, Dict


def to_json_safe(value: Any) -> Any:
    """Recursively convert Decimals to strings and datetimes to ISO strings."""
    if isinstance(value, dict):
        return {k: to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(v) for v in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    return value


def dumps(value: Any) -> str:
    """Serialize to JSON keeping Decimal and datetime types recoverable."""
    def default_handler(obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return {"__decimal__": str(obj)}
        if isinstance(obj, datetime):
            return {"__datetime__": obj.isoformat()}
        if isinstance(obj, date):
            return {"__date__": obj.isoformat()}
        raise TypeError(f"Object of type {type(obj)} is not JSON serializable")
    return json.dumps(value, default=default_handler)


def loads(value: str) -> Any:
    """Inverse of dumps(): rebuild Decimals and datetimes."""
    def object_hook(dct: Dict[str, Any]) -> Any:
        if "__decimal__" in dct:
            return Decimal(dct["__decimal__"])
        if "__datetime__" in dct:
            return datetime.fromisoformat(dct["__datetime__"])
        if "__date__" in dct:
            return date.fromisoformat(dct["__date__"])
        return dct
    return json.loads(value, object_hook=object_hook)


def json_response(data: Any, status: int = 200):
    """jsonify() after converting Decimals, datetimes and enums."""
    from flask import jsonify
    return jsonify(to_json_safe(data)), status


def json_body() -> Dict[str, Any]:
    """The request's JSON object, {} when absent. Any other JSON shape is a 400."""
    from flask import request
    from natapos.exceptions import ValidationError

    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    return payload
