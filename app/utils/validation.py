from functools import wraps
from flask import request
from pydantic import ValidationError
from .responses import validation_error_response


def _payload(source):
    if source == "args":
        return request.args.to_dict()
    return request.get_json(silent=True) or {}


def validate_schema(schema, source="json"):
    """
    Validate the request body (or query string, with source="args") against a
    pydantic model and expose the parsed object as request.validated_data.
    """

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                request.validated_data = schema.model_validate(_payload(source))
            except ValidationError as ve:
                return validation_error_response(ve.errors())
            return fn(*args, **kwargs)
        return wrapper

    return decorator
