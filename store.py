import json
import os
from typing import Any, Optional

from field_extractor import extract_fields
from models.schemas import (
    AIAnalysis,
    AnalysisResult,
    ApiConfig,
    AppStateSnapshot,
    FileData,
    Grid,
    PROVIDER_NAMES,
    ProviderConfig,
    Status,
)
from utils.logging import get_logger

logger = get_logger(__name__)


class AppStore:
    """
    In-memory application state shared by the API endpoints.

    File data lives only here and is replaced wholesale on every upload or
    analysis. The provider configuration is persisted as one JSON object
    keyed by provider name at `config_path`.
    """

    def __init__(self, config_path: str):
        self.config_path = config_path
        self.api_config = ApiConfig()
        self.selected_provider = "zai"
        self.reset_file_data()

    # File data

    def set_file_data(self, data: Optional[FileData]) -> None:
        self.file_data = data

    def set_current_raw_data(self, data: Grid) -> None:
        self.current_raw_data = data

    def set_processing(self, is_processing: bool) -> None:
        self.is_processing = is_processing

    def set_analyzing(self, is_analyzing: bool) -> None:
        self.is_analyzing = is_analyzing

    def set_progress(self, progress: int) -> None:
        self.progress = max(0, min(100, int(progress)))

    def set_status(self, status: Status) -> None:
        self.status = status

    def set_file_name(self, file_name: str) -> None:
        self.file_name = file_name

    def set_error(self, error: str) -> None:
        self.error = error

    def set_selected_provider(self, provider: str) -> None:
        if provider not in PROVIDER_NAMES:
            raise ValueError(f"Unknown provider: {provider}")
        self.selected_provider = provider

    def reset_file_data(self) -> None:
        self.file_data = None
        self.current_raw_data = []
        self.is_processing = False
        self.is_analyzing = False
        self.progress = 0
        self.status = "idle"
        self.file_name = ""
        self.error = ""
        self.pending_task_id = None

    def start_processing(self, file_name: str) -> None:
        self.is_processing = True
        self.progress = 0
        self.status = "processing"
        self.file_name = file_name
        self.error = ""
        self.pending_task_id = None

    def track_task(self, task_id: str) -> None:
        """Remember the parse task whose result should land in the store."""
        self.pending_task_id = task_id

    def finish_processing(self, file_data: FileData) -> None:
        """A successful parse replaces the previous file data entirely."""
        self.file_data = file_data
        self.current_raw_data = file_data.raw_data
        self.progress = 100
        self.status = "success"
        self.is_processing = False
        self.pending_task_id = None

    def fail_processing(self, message: str) -> None:
        self.error = message
        self.status = "error"
        self.is_processing = False
        self.pending_task_id = None

    def apply_analysis(self, result: AnalysisResult, provider: str) -> FileData:
        """Rebuild file data from the current grid plus the AI analysis."""
        grid = self.current_raw_data
        self.file_data = FileData(
            raw_data=grid,
            ai_analysis=AIAnalysis(insights=result.insights, summary=result.summary, provider=provider),
            **extract_fields(grid),
        )
        return self.file_data

    # API config

    def set_api_config(self, config: ApiConfig) -> None:
        self.api_config = config

    def update_api_config(self, provider: str, field: str, value: Any) -> ProviderConfig:
        current = self.api_config.for_provider(provider)
        data = current.model_dump(by_alias=True)
        # Accept both the stored camelCase keys and the attribute names
        info = ProviderConfig.model_fields.get(field)
        key = (info.alias or field) if info else field
        if key not in data:
            raise ValueError(f"Unknown field: {field}")
        data[key] = value
        updated = ProviderConfig.model_validate(data)
        setattr(self.api_config, provider, updated)
        return updated

    def read_saved_config(self) -> Optional[ApiConfig]:
        """The persisted config merged over the defaults, or None when nothing usable is saved.

        Saved providers replace the defaults one by one; others keep their defaults.
        """
        if not os.path.exists(self.config_path):
            return None
        try:
            with open(self.config_path) as f:
                saved = json.load(f)
            if not isinstance(saved, dict):
                raise ValueError("stored config is not an object")
            merged = ApiConfig().model_dump(by_alias=True)
            merged.update({k: v for k, v in saved.items() if k in PROVIDER_NAMES})
            return ApiConfig.model_validate(merged)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading config from storage: {e}")
            return None

    def load_config_from_storage(self) -> bool:
        saved = self.read_saved_config()
        if saved is None:
            return False
        self.api_config = saved
        return True

    def save_config_to_storage(self) -> bool:
        try:
            with open(self.config_path, "w") as f:
                json.dump(self.api_config.model_dump(by_alias=True), f, indent=2)
        except OSError as e:
            logger.error(f"Error saving config to storage: {e}")
            return False
        return True

    def snapshot(self) -> AppStateSnapshot:
        return AppStateSnapshot(
            file_data=self.file_data,
            is_processing=self.is_processing,
            is_analyzing=self.is_analyzing,
            progress=self.progress,
            status=self.status,
            file_name=self.file_name,
            error=self.error,
            selected_provider=self.selected_provider,
            api_config=self.api_config.model_dump(by_alias=True),
        )
