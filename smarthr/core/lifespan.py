from contextlib import asynccontextmanager
import logging

from smarthr.ai.gateway import get_gateway
from smarthr.api.deps import get_screening_pipeline
from smarthr.core.record_store import SCREENINGS, RecordView, collection_path, get_record_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app):
    store = get_record_store()
    async with RecordView(store, collection_path(SCREENINGS)) as history:
        app.state.screening_history = history
        try:
            yield
        finally:
            app.state.screening_history = None
            await get_screening_pipeline().wait_for_pending_writes()

    try:
        await get_gateway().aclose()
    except Exception as exc:  # pragma: no cover - shutdown must finish
        logger.warning("gateway_close_failed: %s", exc)
    store.close()
