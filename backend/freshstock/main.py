# backend/freshstock/main.py

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from freshstock.api.auth_routes import router as auth_router
from freshstock.api.deps_auth import get_events
from freshstock.api.inventory_routes import router as inventory_router
from freshstock.api.maintenance_routes import router as maintenance_router
from freshstock.api.notification_routes import router as notification_router
from freshstock.api.order_routes import router as order_router
from freshstock.core.config import settings
from freshstock.core.database import init_db
from freshstock.core.errors import InventoryError
from freshstock.core.events import EventBus
from freshstock.core.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.app_env == "dev":
        init_db()

    app.state.scheduler = start_scheduler(settings) if settings.scheduler_enabled else None
    yield
    stop_scheduler(app.state.scheduler)


app = FastAPI(title="FreshStock API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["Authorization", "Content-Type"],
)


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(inventory_router, prefix="/api/inventory", tags=["inventory"])
app.include_router(order_router, prefix="/api/orders", tags=["orders"])
app.include_router(notification_router, prefix="/api/notifications", tags=["notifications"])
app.include_router(maintenance_router, prefix="/api/maintenance", tags=["maintenance"])


@app.get("/health")
def health():
    return {"status": "ok"}


@app.websocket("/ws/events")
async def events_socket(websocket: WebSocket, events: EventBus = Depends(get_events)):
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue(maxsize=settings.ws_queue_size)

    def enqueue(message: dict):
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(f"Event queue full, dropping {message['event']} for a slow client")

    # bus listeners run on request/scheduler threads
    def forward(event: str, payload: dict):
        loop.call_soon_threadsafe(enqueue, {"event": event, "data": payload})

    async def pump():
        while True:
            message = await queue.get()
            await websocket.send_json(jsonable_encoder(message))

    unsubscribe = events.subscribe(forward)
    await websocket.accept()
    sender = asyncio.create_task(pump())
    try:
        # incoming messages are ignored; reading is how a disconnect shows up
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe()
        sender.cancel()
