# agrimarket/routes/request_body.py
from __future__ import annotations

from flask import request

from agrimarket.errors import ValidationError


def json_body() -> dict:
    """JSON object sent with the request; {} when there is no JSON body."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def is_preflight() -> bool:
    return request.method == "OPTIONS"
