"""
HTTP error bodies shared by the API routers.
"""
from fastapi import HTTPException

from mail_server.graph import GraphError


def bad_request(description: str) -> HTTPException:
    return HTTPException(status_code=400, detail={"error": "invalid_request", "error_description": description})


def upstream_failure(message: str, e: GraphError, *, passthrough_not_found: bool = False) -> HTTPException:
    """Map a Graph failure to a 500 carrying the operation message and provider details."""
    if passthrough_not_found and e.status_code == 404:
        return HTTPException(status_code=404, detail={"error": message, "details": e.details})
    return HTTPException(status_code=500, detail={"error": message, "details": e.details})
