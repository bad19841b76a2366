# Overview: JSON envelope helpers shared by every blueprint.

from __future__ import annotations

from flask import jsonify


def ok(data=None, message: str | None = None, status: int = 200, **extra):
    """{"success": true, "data": ..., "message": ...}"""
    body: dict = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return jsonify(body), status


def fail(message: str, status: int, errors: list[str] | None = None, **extra):
    """{"success": false, "message": ..., "errors": [...]}"""
    body: dict = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    body.update(extra)
    return jsonify(body), status


def paginated(items: list, meta: dict):
    """List envelope: {"success": true, "data": [...], "pagination": {total, page, limit, totalPages, ...}}"""
    return ok(items, pagination=meta)
