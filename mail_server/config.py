"""
Mail server configuration. Values come from the environment with development defaults.
No secrets in this file; the Azure app registration and session secret come from env.
"""
import os

# Environment name reported by /health
APP_ENV = os.environ.get("APP_ENV", "development")

# Listen port for `python -m mail_server.main`
PORT = int(os.environ.get("PORT", "5000"))

# Azure app registration (Microsoft identity platform, "common" tenant allows personal accounts)
CLIENT_ID = os.environ.get("MS_CLIENT_ID", "")
CLIENT_SECRET = os.environ.get("MS_CLIENT_SECRET", "")
REDIRECT_URI = os.environ.get("MS_REDIRECT_URI", "http://localhost:5000/auth/callback")
AUTHORITY = os.environ.get("MS_AUTHORITY", "https://login.microsoftonline.com/common").rstrip("/")
AUTHORIZE_URL = f"{AUTHORITY}/oauth2/v2.0/authorize"
TOKEN_URL = f"{AUTHORITY}/oauth2/v2.0/token"
LOGOUT_URL = f"{AUTHORITY}/oauth2/v2.0/logout"

# Static anti-forgery value echoed back by the provider
OAUTH_STATE = "email_client_app"

GRAPH_API_BASE = os.environ.get("GRAPH_API_BASE", "https://graph.microsoft.com/v1.0").rstrip("/")
MAIL_SCOPES = (
    "https://graph.microsoft.com/Mail.Read "
    "https://graph.microsoft.com/Mail.ReadWrite "
    "https://graph.microsoft.com/Mail.Send"
)
LOGIN_SCOPES = f"openid profile email offline_access {MAIL_SCOPES}"

# Front end that receives /auth/success and /auth/error redirects
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000").rstrip("/")

# HS256 secret for session tokens and their lifetime (7 days)
SESSION_SECRET = os.environ.get("SESSION_SECRET", "")
SESSION_TOKEN_DAYS = int(os.environ.get("SESSION_TOKEN_DAYS", "7"))
SESSION_ALGORITHM = "HS256"

# SQLite for development; any SQLAlchemy URL works
DATABASE_URL = os.environ.get("MAIL_DATABASE_URL", "sqlite:///./mail_server.db")

# Upstream timeouts (seconds)
TOKEN_TIMEOUT_SECONDS = 10.0
GRAPH_TIMEOUT_SECONDS = float(os.environ.get("GRAPH_TIMEOUT_SECONDS", "10"))
GRAPH_SEND_TIMEOUT_SECONDS = float(os.environ.get("GRAPH_SEND_TIMEOUT_SECONDS", "60"))
GRAPH_PING_TIMEOUT_SECONDS = 5.0

# Login profile fetch: retries after the first attempt, linear backoff base delay
PROFILE_FETCH_RETRIES = int(os.environ.get("PROFILE_FETCH_RETRIES", "2"))
PROFILE_RETRY_DELAY_SECONDS = float(os.environ.get("PROFILE_RETRY_DELAY_SECONDS", "1"))

# When the profile cannot be fetched, log in with a placeholder temporary account instead of failing
ALLOW_TEMPORARY_ACCOUNTS = os.environ.get("ALLOW_TEMPORARY_ACCOUNTS", "true").strip().lower() in ("1", "true", "yes")
TEMPORARY_EMAIL_DOMAIN = "temporary.com"

# Attachment upload limits for send-with-attachments
MAX_ATTACHMENT_BYTES = int(os.environ.get("MAX_ATTACHMENT_BYTES", str(10 * 1024 * 1024)))
MAX_ATTACHMENT_FILES = int(os.environ.get("MAX_ATTACHMENT_FILES", "10"))

# download-all with several attachments: "summary" (text preview file) or "zip"
BULK_DOWNLOAD_MODE = os.environ.get("BULK_DOWNLOAD_MODE", "summary").strip().lower()
SUMMARY_PREVIEW_CHARS = 1000

# Listing defaults
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
