"""uvicorn entrypoint for the Lumi chat API.

    uvicorn apps.api.main:app --reload

The instance is built here rather than in lumi.app so tests can call
create_app() with their own settings and no import-time app.
"""

from lumi.app import add_request_id_middleware, create_app

app = create_app()
add_request_id_middleware(app)

__all__ = ["app"]
