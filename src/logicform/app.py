from __future__ import annotations

from fastapi import FastAPI

from logicform import __version__
from logicform.auth import get_auth_provider
from logicform.config import Settings, ensure_dirs
from logicform.routes.api import router as api_router
from logicform.routes.public import router as public_router
from logicform.storage import init_storage


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()
    ensure_dirs(settings)
    storage = init_storage(settings)
    auth = get_auth_provider(settings)

    app = FastAPI(
        title="logicform",
        version=__version__,
        openapi_tags=[
            {"name": "api/forms", "description": "REST API: forms"},
            {"name": "api/logic", "description": "REST API: conditional logic"},
            {"name": "api/submissions", "description": "REST API: submissions"},
            {"name": "public", "description": "Published forms"},
            {"name": "system", "description": "System"},
        ],
    )

    app.state.storage = storage
    app.state.settings = settings
    app.state.auth_provider = auth

    app.include_router(api_router)
    app.include_router(public_router)

    return app
