"""
Approval server entry point.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from .approvals import ApprovalEngine, ApprovalQueue, ConfigStore, EventBusPromptSurface, JsonStateStore
from .config import get_project_roots, legacy_state_path, load_settings
from .events import Event
from .logging_config import setup_logging
from .server import app, set_engine, set_prompt_surface, set_queue
from .server.event_bus import get_event_bus

# Initialize logging before anything else
setup_logging()
logger = logging.getLogger(__name__)

# Constants
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765


def _settings_write_rules(store: ConfigStore) -> list[str]:
    return load_settings(store.first_project_root()).write_rules


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the approval engine and tear it down with the app."""
    project_roots = get_project_roots()
    settings = load_settings(project_roots[0] if project_roots else None)
    if settings.log_level:
        setup_logging(settings.log_level)

    logger.info("Starting approval server")
    logger.info("Project roots: %s", ", ".join(project_roots) or "(none)")

    store = ConfigStore(project_roots)
    engine = ApprovalEngine(
        store,
        settings_source=lambda: _settings_write_rules(store),
        legacy_state=JsonStateStore(legacy_state_path()),
    )
    engine.migrate_from_global_state()

    event_bus = get_event_bus()
    loop = asyncio.get_running_loop()
    pending_publishes: set[asyncio.Task] = set()

    def publish_change() -> None:
        task = loop.create_task(event_bus.publish(Event(type="approvals.changed", properties={})))
        pending_publishes.add(task)
        task.add_done_callback(pending_publishes.discard)

    engine.on_did_change.subscribe(publish_change)

    queue = ApprovalQueue()
    surface = EventBusPromptSurface(event_bus, timeout=settings.prompt_timeout_seconds)

    store.start_watching(loop)
    engine.start()
    set_engine(engine)
    set_queue(queue)
    set_prompt_surface(surface)
    logger.info("Approval engine ready")

    yield

    logger.info("Shutting down approval engine...")
    queue.reject_all()
    set_prompt_surface(None)
    set_queue(None)
    set_engine(None)
    engine.close()
    store.close()
    logger.info("Approval engine stopped")


app.router.lifespan_context = lifespan


def main() -> None:
    """Start the approval server."""
    host = os.environ.get("HOST", DEFAULT_HOST)
    port = int(os.environ.get("PORT", str(DEFAULT_PORT)))

    logger.info("Server listening on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
