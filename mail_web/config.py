"""
Mail web front-end configuration. Values come from the environment with development defaults.
"""
import os

# Mail server REST API (login starts at {API_BASE_URL}/auth/login)
API_BASE_URL = os.environ.get("MAIL_API_URL", "http://localhost:5000").rstrip("/")

# Public URL of this front end; the mail server's FRONTEND_URL must point here
WEB_BASE_URL = os.environ.get("MAIL_WEB_URL", "http://localhost:3000").rstrip("/")
PORT = int(os.environ.get("MAIL_WEB_PORT", "3000"))

# Session token cookie (the token itself is issued by the mail server)
SESSION_COOKIE_NAME = os.environ.get("SESSION_COOKIE_NAME", "mail_session")
COOKIE_SECURE = os.environ.get("COOKIE_SECURE", "false").strip().lower() == "true"
COOKIE_MAX_AGE = 7 * 24 * 3600

# Microsoft sign-out, called after the cookie is cleared
LOGOUT_URL = os.environ.get("MS_LOGOUT_URL", "https://login.microsoftonline.com/common/oauth2/v2.0/logout")

API_TIMEOUT_SECONDS = 10.0
API_SEND_TIMEOUT_SECONDS = 60.0

PAGE_SIZE = 20
DASHBOARD_RECENT = 3

# Mirrors the server limits so oversized uploads are refused before sending
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
MAX_UPLOAD_FILES = 10
