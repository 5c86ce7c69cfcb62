from fastapi import FastAPI

from provenance.api.routes import router
from provenance.chain.resolver import RegistryResolver
from provenance.config.settings import Settings
from provenance.jobs.queue_manager import QueueManager


def create_app(
    queue_manager: QueueManager,
    resolver: RegistryResolver,
    settings: Settings,
) -> FastAPI:
    """Build the HTTP app around already-constructed services."""
    app = FastAPI(title="Content Provenance Verification")
    app.state.queue_manager = queue_manager
    app.state.resolver = resolver
    app.state.settings = settings
    app.include_router(router)
    return app
