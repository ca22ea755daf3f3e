import asyncio
import json
import os
from typing import Any, Dict, Optional

from celery.result import AsyncResult
from fastapi import FastAPI, File, UploadFile
from fastapi.responses import FileResponse, JSONResponse, StreamingResponse
from starlette.staticfiles import StaticFiles

from analyzer import AnalysisError, analyze_current, analyze_data, check_connection
from celery_app import app as celery_app
from file_processor import FileProcessingError, FileProcessor
from models.schemas import (
    AnalysisRequest,
    AnalyzeCurrentRequest,
    ApiConfig,
    FileData,
    PROVIDER_NAMES,
    ProviderSelection,
)
from store import AppStore
from tasks import process_file
from utils.logging import configure_logging, get_logger
from utils.settings import get_settings

STATIC_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "static")

settings = get_settings()
configure_logging(settings.log_level)
logger = get_logger(__name__)

app = FastAPI(title="Sheet Analyzer")
processor = FileProcessor(base_folder=settings.data_folder)
store = AppStore(config_path=settings.api_config_path)
store.load_config_from_storage()

app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")


@app.get("/")
def index():
    return FileResponse(os.path.join(STATIC_DIR, "client.html"))


def error_response(message: str, status_code: int = 400, **extra) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


def sse_event(event: str, data: dict):
    payload = json.dumps({"event": event, **data})
    return f"data: {payload}\n\n"


def _task_percentage(res: AsyncResult, default: int) -> int:
    info = res.info
    if isinstance(info, dict) and "percentage" in info:
        return int(info["percentage"])
    return default


def settle_task(task_id: str, res: AsyncResult) -> None:
    """Apply a finished parse task to the store, unless a newer upload replaced it."""
    if store.pending_task_id != task_id:
        return
    if res.state == "SUCCESS":
        payload = res.result or {}
        store.finish_processing(FileData.model_validate(payload.get("file_data", {})))
    elif res.state == "FAILURE":
        message = str(res.result)
        logger.error(f"Processing {store.file_name} failed: {message}")
        store.fail_processing(message)


def settle_pending_task() -> None:
    """Bring the store up to date whether or not anyone read the upload stream."""
    task_id = store.pending_task_id
    if task_id is not None:
        settle_task(task_id, AsyncResult(task_id, app=celery_app))


@app.post("/upload")
async def upload(file: UploadFile = File(...)):
    contents = await file.read()
    filename = file.filename or ""

    # 1) save to disk, rejecting unsupported formats
    store.start_processing(filename)
    try:
        file_path = processor.save_uploaded_file(contents, filename)
    except FileProcessingError as e:
        store.fail_processing(str(e))
        return error_response(str(e))

    # 2) enqueue a Celery job
    task = process_file.delay(file_path)
    store.track_task(task.id)
    store.set_progress(10)

    # 3) stream back status via SSE
    async def event_stream():
        yield sse_event("queued", {"status": "uploaded", "task_id": task.id, "percentage": 10, "filename": filename})
        last_percentage = 10

        while True:
            res = AsyncResult(task.id, app=celery_app)
            state = res.state

            if state == "PENDING":
                # still waiting for a worker
                await asyncio.sleep(settings.sse_poll_interval)
                continue

            if state in ("STARTED", "PROGRESS"):
                percentage = _task_percentage(res, 20)
                if percentage != last_percentage:
                    last_percentage = percentage
                    if store.pending_task_id == task.id:
                        store.set_progress(percentage)
                    yield sse_event("processing", {"status": "processing", "task_id": task.id, "percentage": percentage})
                await asyncio.sleep(settings.sse_poll_interval)
                continue

            if state == "SUCCESS":
                settle_task(task.id, res)
                payload = res.result or {}
                file_data = FileData.model_validate(payload.get("file_data", {}))
                yield sse_event("done", {
                    "status": "done",
                    "task_id": task.id,
                    "percentage": 100,
                    "file_data": file_data.model_dump(),
                    "summary": payload.get("summary", {}),
                })
                break

            if state == "FAILURE":
                settle_task(task.id, res)
                yield sse_event("error", {
                    "status": "error",
                    "task_id": task.id,
                    "message": str(res.result),
                })
                break

            # other states (RETRY, etc)
            await asyncio.sleep(settings.sse_poll_interval)

    return StreamingResponse(event_stream(), media_type="text/event-stream")


@app.post("/api/analyze")
async def analyze(request: AnalysisRequest):
    try:
        result = await analyze_data(request)
    except AnalysisError as e:
        return error_response(str(e))
    except Exception as e:
        logger.exception("Analysis error")
        return error_response("Internal server error", status_code=500, details=str(e))
    return result.model_dump()


@app.post("/api/analyze/current")
async def analyze_current_file(request: Optional[AnalyzeCurrentRequest] = None):
    settle_pending_task()
    try:
        file_data = await analyze_current(store, request.provider if request else None)
    except (AnalysisError, ValueError) as e:
        store.set_error(str(e))
        return error_response(str(e))
    except Exception as e:
        logger.exception("AI analysis of the current file failed")
        store.set_error("Error in the AI analysis")
        return error_response("Error in the AI analysis", status_code=500, details=str(e))
    return file_data.model_dump()


@app.get("/api/state")
async def get_state():
    settle_pending_task()
    return store.snapshot().model_dump()


@app.delete("/api/state")
async def reset_state():
    store.reset_file_data()
    return store.snapshot().model_dump()


@app.put("/api/provider")
async def select_provider(selection: ProviderSelection):
    try:
        store.set_selected_provider(selection.provider)
    except ValueError as e:
        return error_response(str(e))
    return {"selected_provider": store.selected_provider}


@app.get("/api/config")
async def get_config():
    return store.api_config.model_dump(by_alias=True)


@app.put("/api/config")
async def replace_config(config: ApiConfig):
    store.set_api_config(config)
    if not store.save_config_to_storage():
        return error_response("Could not save the configuration", status_code=500)
    return store.api_config.model_dump(by_alias=True)


@app.post("/api/config/save")
async def save_config():
    if not store.save_config_to_storage():
        return error_response("Could not save the configuration", status_code=500)
    return {"saved": True}


@app.post("/api/config/load")
async def load_config():
    if not store.load_config_from_storage():
        return error_response("No saved configuration found")
    return store.api_config.model_dump(by_alias=True)


@app.patch("/api/config/{provider}")
async def update_provider_config(provider: str, fields: Dict[str, Any]):
    if provider not in PROVIDER_NAMES:
        return error_response(f"Unknown provider: {provider}")
    try:
        for field, value in fields.items():
            store.update_api_config(provider, field, value)
    except ValueError as e:
        return error_response(str(e))
    return store.api_config.for_provider(provider).model_dump(by_alias=True)


@app.post("/api/config/{provider}/test")
async def provider_connection_check(provider: str):
    if provider not in PROVIDER_NAMES:
        return error_response(f"Unknown provider: {provider}")
    result = await check_connection(provider, store.api_config.for_provider(provider))
    return result.model_dump()
