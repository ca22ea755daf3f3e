from celery_app import app
from field_extractor import extract_fields
from file_processor import FileProcessor
from models.schemas import FileData
from utils.logging import get_logger
from utils.settings import get_settings

logger = get_logger("tasks")

# point this at the same folder the API saves uploads to
processor = FileProcessor(base_folder=get_settings().data_folder)


def _report(task, percentage: int) -> None:
    # Eager runs have no request id to attach state to
    if task.request.id is not None and not task.request.is_eager:
        task.update_state(state="PROGRESS", meta={"percentage": percentage})


@app.task(bind=True)
def process_file(self, file_path: str):
    """
    1) Read the uploaded file into a grid
    2) Extract names, dates and times
    3) Return the FileData plus a small summary for the client
    """
    _report(self, 20)
    grid, stats = processor.read_grid(file_path)
    logger.info(f"Parsed {file_path}: {stats['total_rows']} rows, {stats['total_columns']} columns")

    _report(self, 60)
    fields = extract_fields(grid)

    _report(self, 90)
    file_data = FileData(raw_data=grid, **fields)

    return {
        "file_data": file_data.model_dump(),
        "summary": {
            "total_rows": stats["total_rows"],
            "total_columns": stats["total_columns"],
            "processing_time": stats["processing_time_seconds"],
            "stats": stats,
        },
    }
