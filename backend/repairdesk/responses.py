# Overview: JSON response envelope shared by every API route.

"""
Every response body is {"success": bool, "data"?: ..., "error"?: {"message", "errors"?}}.
"""

from flask import jsonify


def success(data=None, status: int = 200):
    return jsonify({"success": True, "data": data}), status


def failure(message: str, status: int, errors: list[dict] | None = None):
    error = {"message": message}
    if errors:
        error["errors"] = errors
    return jsonify({"success": False, "error": error}), status
