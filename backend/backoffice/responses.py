# Overview: JSON envelope helpers shared by every route.

"""
Every response body has the same shape:

    {"success": bool, "data": any, "message": str}
"""

from flask import jsonify


def api_response(data=None, message: str = "", status: int = 200):
    return jsonify({"success": True, "data": data, "message": message}), status


def api_error(message: str, data=None, status: int = 400):
    return jsonify({"success": False, "data": data, "message": message}), status


def pagination_of(result: dict) -> dict:
    """The pagination block of a service listing, if it was paginated."""
    return {"pagination": result["pagination"]} if "pagination" in result else {}


def mass_delete_message(result: dict, noun: str) -> str:
    message = f"{result['deleted_count']} {noun}(s) deleted successfully."
    if result.get("not_found"):
        message += " Not found: " + ", ".join(result["not_found"])
    return message
