"""
FastAPI Backend for Task Notes

Provides REST endpoints for categories and tasks (create, update, soft
delete, restore, purge) plus a WebSocket change feed so open views know when
to refetch. Storage goes through NoteActions on a shared NoteDatabase.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Set
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect, Depends, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .actions import NoteActions
from .config import get_settings
from .database import NoteDatabase
from .maintenance import background_tasks
from .models import (
    Category,
    CategoryInput,
    CategoryListResponse,
    ConnectionCheckResponse,
    HealthResponse,
    Task,
    TaskInput,
    TaskListResponse,
    create_error_response,
    create_success_response,
)

settings = get_settings()

logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)

# Global instances for dependency injection
db_instance: Optional[NoteDatabase] = None
actions_instance: Optional[NoteActions] = None


class ConnectionManager:
    """
    WebSocket connection manager with parallel broadcasting.

    Handles connection lifecycle, parallel message broadcasting to all clients,
    and cleanup of connections that fail to receive.
    """

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()
        self._connection_lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        """Accept new WebSocket connection and add to active connections."""
        await websocket.accept()
        async with self._connection_lock:
            self.active_connections.add(websocket)
        logger.info(f"WebSocket connected. Total connections: {len(self.active_connections)}")

    async def disconnect(self, websocket: WebSocket):
        """Remove WebSocket from active connections registry."""
        async with self._connection_lock:
            self.active_connections.discard(websocket)
        logger.info(f"WebSocket disconnected. Total connections: {len(self.active_connections)}")

    async def broadcast(self, event_data: Dict[str, Any]):
        """
        Broadcast event to all connected WebSocket clients in parallel.

        Args:
            event_data: Event data to broadcast (will be JSON serialized)
        """
        if not self.active_connections:
            logger.debug("No active connections for broadcast")
            return

        message = json.dumps(event_data)
        async with self._connection_lock:
            send_tasks = [self._send_safe(ws, message) for ws in self.active_connections.copy()]

        if send_tasks:
            results = await asyncio.gather(*send_tasks, return_exceptions=True)
            successful_broadcasts = sum(1 for result in results if result is True)
            logger.info(f"Broadcast completed: {successful_broadcasts}/{len(send_tasks)} successful")

    async def _send_safe(self, websocket: WebSocket, message: str) -> bool:
        """Send to one connection; drop it from the registry if the send fails."""
        try:
            await websocket.send_text(message)
            return True
        except Exception as e:
            logger.warning(f"Failed to send message to WebSocket: {e}")
            await self.disconnect(websocket)
            return False

    async def broadcast_event(self, event_type: str, event_data: Dict[str, Any]):
        """Wrap a change in the ``{type, timestamp, data}`` envelope and broadcast it."""
        await self.broadcast({
            "type": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": event_data,
        })

    def get_connection_count(self) -> int:
        """Get current number of active WebSocket connections."""
        return len(self.active_connections)


connection_manager = ConnectionManager()

# Keeps fire-and-forget broadcast tasks referenced until they finish
_pending_broadcasts: Set[asyncio.Task] = set()


def broadcast_change(event_type: str, data: Dict[str, Any]) -> None:
    """
    NoteActions change listener: schedule a broadcast on the running loop.

    Changes made outside the event loop (CLI, worker threads) are not broadcast.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.debug(f"No running loop, skipping broadcast of {event_type}")
        return
    task = loop.create_task(connection_manager.broadcast_event(event_type, data))
    _pending_broadcasts.add(task)
    task.add_done_callback(_pending_broadcasts.discard)


def get_database() -> NoteDatabase:
    """
    FastAPI dependency to provide database instance.

    Raises:
        HTTPException: If database is not available
    """
    if db_instance is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return db_instance


def get_actions() -> NoteActions:
    """FastAPI dependency to provide the shared NoteActions."""
    if actions_instance is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return actions_instance


def init_app_state(db: NoteDatabase) -> NoteActions:
    """Bind the module-level database and actions used by the dependencies."""
    global db_instance, actions_instance
    db_instance = db
    actions_instance = NoteActions(db)
    actions_instance.add_listener(broadcast_change)
    return actions_instance


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager for startup/shutdown operations.

    Opens the database unless one was bound beforehand and runs the trash
    purge worker while the app is up.
    """
    global db_instance, actions_instance
    owns_database = db_instance is None

    try:
        if owns_database:
            init_app_state(NoteDatabase(str(settings.database_path)))
            logger.info(f"Database initialized: {settings.database_path}")

        await background_tasks.start_background_tasks(
            actions_instance,
            retention_days=settings.trash_retention_days,
            interval=settings.purge_interval,
        )

        logger.info("Task Notes API starting up...")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    yield

    try:
        await background_tasks.stop_background_tasks()
    except Exception as e:
        logger.error(f"Error stopping background tasks: {e}")

    if owns_database and db_instance:
        db_instance.close()
        db_instance = None
        actions_instance = None
        logger.info("Database connection closed")


app = FastAPI(
    title="Task Notes API",
    description="REST API with WebSocket change feed for categorized rich-text notes",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/healthz", response_model=HealthResponse)
async def health_check(db: NoteDatabase = Depends(get_database)):
    """Service status including database connectivity and WebSocket connections."""
    database_connected = True
    task_counts = None
    try:
        task_counts = db.count_tasks()
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database_connected = False

    return HealthResponse(
        status="healthy" if database_connected else "degraded",
        database_connected=database_connected,
        active_websocket_connections=connection_manager.get_connection_count(),
        task_counts=task_counts,
        timestamp=datetime.now(timezone.utc).isoformat()
    )


@app.get("/api/test-connection", response_model=ConnectionCheckResponse)
async def test_connection(actions: NoteActions = Depends(get_actions)):
    """Run the database self-test."""
    result = actions.check_connection()
    if not result["success"]:
        return JSONResponse(status_code=500, content=result)
    return result


@app.websocket("/ws/updates")
async def websocket_updates(websocket: WebSocket):
    """Accept WebSocket connections and register with connection manager."""
    await connection_manager.connect(websocket)
    try:
        # Keep the connection open; client messages are ignored
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await connection_manager.disconnect(websocket)
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        await connection_manager.disconnect(websocket)


# Categories

@app.get("/api/categories", response_model=CategoryListResponse)
async def list_categories(actions: NoteActions = Depends(get_actions)):
    categories = actions.get_categories()
    return CategoryListResponse(categories=categories, total_count=len(categories))


@app.post("/api/categories", response_model=Category, status_code=201)
async def create_category(payload: CategoryInput, actions: NoteActions = Depends(get_actions)):
    """Create a category. Names must be unique ignoring case."""
    if actions.category_name_taken(payload.name):
        raise HTTPException(status_code=409, detail=f"Category '{payload.name}' already exists")
    category = actions.create_category(payload.name)
    if category is None:
        raise HTTPException(status_code=500, detail="Failed to create category")
    return category


@app.patch("/api/categories/{category_id}", response_model=Category)
async def rename_category(
    category_id: str,
    payload: CategoryInput,
    actions: NoteActions = Depends(get_actions)
):
    if actions.get_category(category_id) is None:
        raise HTTPException(status_code=404, detail=f"Category {category_id} not found")
    if actions.category_name_taken(payload.name, exclude_id=category_id):
        raise HTTPException(status_code=409, detail=f"Category '{payload.name}' already exists")
    category = actions.rename_category(category_id, payload.name)
    if category is None:
        raise HTTPException(status_code=500, detail="Failed to rename category")
    return category


@app.delete("/api/categories/{category_id}")
async def delete_category(category_id: str, actions: NoteActions = Depends(get_actions)):
    """Delete a category; its tasks become uncategorized."""
    if not actions.delete_category(category_id):
        return JSONResponse(
            status_code=404,
            content=create_error_response(f"Category {category_id} not found", code=404)
        )
    return create_success_response(
        f"Deleted category {category_id}", data={"category_id": category_id}
    )


# Tasks

@app.get("/api/tasks", response_model=TaskListResponse)
async def list_tasks(
    category_id: Optional[str] = Query(None, description="Category to list"),
    uncategorized: bool = Query(False, description="List tasks without a category"),
    actions: NoteActions = Depends(get_actions)
):
    """List live tasks newest first: one category, the uncategorized ones, or all."""
    if category_id:
        tasks = actions.get_tasks_by_category(category_id)
    elif uncategorized:
        tasks = actions.get_tasks_by_category(None)
    else:
        tasks = actions.get_tasks()
    return TaskListResponse(tasks=tasks, total_count=len(tasks), category_id=category_id)


@app.get("/api/tasks/trash", response_model=TaskListResponse)
async def list_deleted_tasks(actions: NoteActions = Depends(get_actions)):
    tasks = actions.get_deleted_tasks()
    return TaskListResponse(tasks=tasks, total_count=len(tasks))


@app.get("/api/tasks/{task_id}", response_model=Task)
async def get_task(task_id: str, actions: NoteActions = Depends(get_actions)):
    task = actions.get_task(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    return task


def _require_category(actions: NoteActions, category_id: Optional[str]) -> None:
    if category_id and actions.get_category(category_id) is None:
        raise HTTPException(status_code=422, detail=f"Category {category_id} does not exist")


@app.post("/api/tasks", response_model=Task, status_code=201)
async def create_task(payload: TaskInput, actions: NoteActions = Depends(get_actions)):
    _require_category(actions, payload.category_id)
    task = actions.create_task(payload)
    if task is None:
        raise HTTPException(status_code=500, detail="Failed to create task")
    return task


@app.put("/api/tasks/{task_id}", response_model=Task)
async def update_task(task_id: str, payload: TaskInput, actions: NoteActions = Depends(get_actions)):
    """Replace title, content and category of a live task."""
    _require_category(actions, payload.category_id)
    task = actions.update_task(task_id, payload)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found or deleted")
    return task


@app.delete("/api/tasks/{task_id}")
async def delete_task(task_id: str, actions: NoteActions = Depends(get_actions)):
    """Soft delete: the task moves to the trash."""
    if not actions.delete_task(task_id):
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found or already deleted")
    return create_success_response(f"Moved task {task_id} to trash", data={"task_id": task_id})


@app.post("/api/tasks/{task_id}/restore", response_model=Task)
async def restore_task(task_id: str, actions: NoteActions = Depends(get_actions)):
    if not actions.restore_task(task_id):
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found in trash")
    return actions.get_task(task_id)


@app.delete("/api/tasks/{task_id}/purge")
async def purge_task(task_id: str, actions: NoteActions = Depends(get_actions)):
    """Permanently delete a task from the trash."""
    if not actions.purge_task(task_id):
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found in trash")
    return create_success_response(f"Permanently deleted task {task_id}", data={"task_id": task_id})


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tasknotes.api:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level="info"
    )
