"""
Mail Server: JSON REST backend for the web mail client.
OAuth login against Microsoft, session tokens, and a gateway to Microsoft Graph mail.
Port 5000 by default.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from mail_server.attachments import router as attachments_router
from mail_server.config import APP_ENV, FRONTEND_URL, PORT, REDIRECT_URI
from mail_server.database import init_db
from mail_server.debug import router as debug_router
from mail_server.emails import router as emails_router
from mail_server.oauth import router as oauth_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup."""
    init_db()
    logger.info("Mail server starting (environment=%s)", APP_ENV)
    logger.info("Frontend URL: %s", FRONTEND_URL)
    logger.info("OAuth redirect: %s", REDIRECT_URI)
    yield


app = FastAPI(title="Mail Server", version="1.0.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)
app.include_router(oauth_router, tags=["auth"])
app.include_router(attachments_router, tags=["attachments"])
app.include_router(emails_router, tags=["emails"])
app.include_router(debug_router, tags=["debug"])


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("%s %s", request.method, request.url.path)
    return await call_next(request)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "mail_server",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": APP_ENV,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "mail_server.main:app",
        host="127.0.0.1",
        port=PORT,
        reload=True,
    )
