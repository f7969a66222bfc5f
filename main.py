"""
Artistic Photo Stylizer API
FastAPI application: photo upload, background stylization and live progress over WebSocket
"""

from fastapi import FastAPI, HTTPException, UploadFile, File, Form, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from pydantic import BaseModel
from typing import Optional
from PIL import Image, UnidentifiedImageError
import asyncio
import io
import logging
import os
import sys
import uuid
from datetime import datetime, timezone

from config.settings import HttpSettings, Settings, get_settings
from services.notifier import NotificationChannel
from services.pipeline import StylePipeline
from services.remote_clients import OpenAIImageDescriber, OpenAIImageGenerator, build_openai_client
from services.storage import StorageService
from services.task_manager import TaskManager

logger = logging.getLogger(__name__)

# Request/Response models
class UploadResponse(BaseModel):
    taskId: str

class StatusResponse(BaseModel):
    task_id: str
    style: str
    status: str
    progress: int
    result_url: Optional[str] = None
    error_message: Optional[str] = None

class ImageCountResponse(BaseModel):
    count: int


def build_pipeline(settings: Settings) -> StylePipeline:
    """Wire the production pipeline with OpenAI-backed remote capabilities"""
    client = build_openai_client(settings)
    return StylePipeline(
        task_manager=TaskManager(ttl_seconds=settings.task_ttl_seconds),
        notifier=NotificationChannel(send_timeout=settings.notification_send_timeout_seconds),
        storage=StorageService(settings),
        describer=OpenAIImageDescriber(client, settings.description_model),
        generator=OpenAIImageGenerator(client, settings.image_model, settings.image_size),
    )


async def purge_expired_tasks(pipeline: StylePipeline, interval: int):
    while True:
        await asyncio.sleep(interval)
        pipeline.task_manager.purge_expired()


def is_supported_image(data: bytes, formats) -> bool:
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            return img.format in formats
    except (UnidentifiedImageError, OSError, SyntaxError):
        return False


def mount_static(app: FastAPI, settings: Settings):
    # Mounted after the API routes so "/" never shadows them
    os.makedirs(settings.generated_dir, exist_ok=True)
    app.mount(settings.generated_url_prefix, StaticFiles(directory=settings.generated_dir), name="generated")
    if os.path.isdir(settings.static_dir):
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")


def create_app(settings: Optional[Settings] = None, pipeline: Optional[StylePipeline] = None) -> FastAPI:
    """
    Build the application. Settings are resolved at startup so that a missing
    API key stops the process before it serves anything.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_settings = settings or get_settings()
        app.state.settings = app_settings
        app.state.pipeline = pipeline or build_pipeline(app_settings)
        mount_static(app, app_settings)

        sweeper = None
        if app_settings.task_ttl_seconds > 0 and app_settings.purge_interval_seconds > 0:
            sweeper = asyncio.create_task(
                purge_expired_tasks(app.state.pipeline, app_settings.purge_interval_seconds)
            )
        logger.info("Pipeline started")
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
            await app.state.pipeline.close()
            logger.info("Pipeline stopped")

    app = FastAPI(
        title="Artistic Photo Stylizer",
        description="Turn photos into artwork with generative AI, with live progress",
        version="1.0.0",
        lifespan=lifespan,
    )

    # HttpSettings needs no credentials, so a missing key still fails at startup
    http_settings = settings or HttpSettings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=http_settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # API Endpoints

    @app.post("/upload", response_model=UploadResponse)
    async def upload_photo(photo: Optional[UploadFile] = File(None), style: Optional[str] = Form(None)):
        """
        Accept a photo and start stylizing it; responds before processing finishes
        """
        current: StylePipeline = app.state.pipeline
        current_settings: Settings = app.state.settings
        await current.notifier.status_log("", "Starting upload processing")

        if photo is None or not photo.filename:
            return JSONResponse(status_code=400, content={"error": "File was not uploaded"})

        data = await photo.read()
        if not data:
            return JSONResponse(status_code=400, content={"error": "File was not uploaded"})
        if len(data) > current_settings.max_file_size:
            return JSONResponse(status_code=400, content={"error": "File is too large"})
        if not is_supported_image(data, current_settings.supported_formats):
            return JSONResponse(status_code=400, content={"error": "Unsupported image format"})

        task_id = str(uuid.uuid4())
        image_path = None
        try:
            image_path = await current.storage.save_upload(data, f"{task_id}.upload")
            await current.submit(task_id, image_path, style or current_settings.default_style)
        except Exception as e:
            logger.error(f"Error creating stylization task: {str(e)}")
            if image_path is not None:
                await current.storage.delete_file(image_path)
            raise HTTPException(status_code=500, detail="Failed to create stylization task")

        return UploadResponse(taskId=task_id)

    @app.get("/status/{task_id}", response_model=StatusResponse)
    async def get_task_status(task_id: str):
        """
        Get the current state of a task
        """
        task = app.state.pipeline.task_manager.get_task(task_id)
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")

        return StatusResponse(
            task_id=task.task_id,
            style=task.style,
            status=task.status.value,
            progress=task.progress,
            result_url=task.result_url,
            error_message=task.error_message,
        )

    @app.get("/image-count", response_model=ImageCountResponse)
    @app.get("/imageCount", response_model=ImageCountResponse, include_in_schema=False)
    async def get_image_count():
        return ImageCountResponse(count=app.state.pipeline.image_counter.value)

    @app.websocket("/ws")
    async def notifications(websocket: WebSocket):
        """
        Notification channel; every connected client receives every event
        """
        notifier: NotificationChannel = app.state.pipeline.notifier
        await notifier.connect(websocket)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            notifier.disconnect(websocket)

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint
        """
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "tasks_in_flight": app.state.pipeline.in_flight,
            "observers": app.state.pipeline.notifier.subscriber_count,
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    from pydantic import ValidationError

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        settings = get_settings()
    except ValidationError:
        logger.error("API keys are not set in environment variables")
        sys.exit(1)

    logging.getLogger().setLevel(settings.log_level.upper())
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
