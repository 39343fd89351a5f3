"""Thin API launcher.

This is the uvicorn entrypoint. All application logic lives in the folio package.
Run with: uvicorn main:app --reload

Note: The app instance is created here (not in folio.app) to avoid import-time
side effects. This allows tests to import create_app without requiring all
environment variables to be configured.
"""

from folio.app import add_request_id_middleware, create_app
from folio.config import get_settings
from folio.logging import configure_logging

settings = get_settings()
configure_logging(json_format=settings.log_json, level=settings.log_level)

app = create_app()
# Add request-id middleware LAST so it runs FIRST (outermost)
add_request_id_middleware(app)

__all__ = ["app"]
