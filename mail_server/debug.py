"""
Diagnostics for setting up the Azure app registration: configuration check and Graph reachability.
Secrets are reported only as set/missing with their length.
"""
import logging

import httpx
from fastapi import APIRouter

from mail_server import config, graph

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/debug")

TROUBLESHOOTING = [
    "1. Ensure MS_CLIENT_ID is a valid Azure App Registration ID (36 char UUID)",
    "2. Ensure MS_CLIENT_SECRET is current (they expire)",
    "3. Check the redirect URI matches exactly in the Azure Portal",
    "4. Verify the app allows personal Microsoft accounts",
    "5. Check API permissions are granted (Mail.Read, Mail.ReadWrite, Mail.Send)",
]


def _secret_entry(value: str, min_length: int) -> dict:
    return {
        "value": "set" if value else "missing",
        "length": len(value),
        "valid": len(value) > min_length,
    }


def _url_entry(value: str) -> dict:
    return {"value": value or "missing", "valid": value.startswith("http")}


def check_configuration() -> dict:
    entries = {
        "clientId": {
            "value": "set" if config.CLIENT_ID else "missing",
            "length": len(config.CLIENT_ID),
            "valid": len(config.CLIENT_ID) == 36,
        },
        "clientSecret": _secret_entry(config.CLIENT_SECRET, 10),
        "redirectUri": _url_entry(config.REDIRECT_URI),
        "sessionSecret": _secret_entry(config.SESSION_SECRET, 10),
        "frontendUrl": _url_entry(config.FRONTEND_URL),
    }
    all_valid = all(item["valid"] for item in entries.values())
    return {
        "status": "Configuration valid" if all_valid else "Configuration issues",
        "valid": all_valid,
        "config": entries,
        "troubleshooting": TROUBLESHOOTING,
    }


@router.get("/check")
def check():
    return check_configuration()


@router.get("/test-microsoft")
def test_microsoft():
    """Reachability of the Graph root; always 200 so the report renders in a browser."""
    try:
        result = graph.ping()
    except httpx.HTTPError as e:
        logger.warning("Graph unreachable: %s", e)
        return {
            "microsoftGraph": "Unreachable",
            "error": str(e),
            "status": "Cannot reach Microsoft Graph API - check network/firewall",
        }
    return {
        "microsoftGraph": "Reachable",
        "version": result["body"],
        "status": "Microsoft Graph API is accessible",
    }
