from pydantic import BaseModel, ConfigDict, Field
from typing import List, Dict, Any, Optional, Literal, Union

Cell = Union[str, int, float, bool, None]
Grid = List[List[Cell]]

PROVIDER_NAMES = ("gemini", "deepseek", "zai")
DEFAULT_MODELS = {
    "gemini": "gemini-pro",
    "deepseek": "deepseek-chat",
    "zai": "glm-4.5",
}

Status = Literal["idle", "processing", "success", "error"]


class AIAnalysis(BaseModel):
    insights: List[str] = []
    summary: str = ""
    provider: str


class FileData(BaseModel):
    names: List[str] = []
    dates: List[str] = []
    times: List[str] = []
    raw_data: Grid = []
    ai_analysis: Optional[AIAnalysis] = None


class ProviderConfig(BaseModel):
    # Stored and exchanged with camelCase keys
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    api_key: str = Field("", alias="apiKey")
    model: str = ""
    base_url: Optional[str] = Field("", alias="baseUrl")


def default_provider_config(provider: str) -> ProviderConfig:
    return ProviderConfig(model=DEFAULT_MODELS[provider])


class ApiConfig(BaseModel):
    gemini: ProviderConfig = Field(default_factory=lambda: default_provider_config("gemini"))
    deepseek: ProviderConfig = Field(default_factory=lambda: default_provider_config("deepseek"))
    zai: ProviderConfig = Field(default_factory=lambda: default_provider_config("zai"))

    def for_provider(self, provider: str) -> ProviderConfig:
        if provider not in PROVIDER_NAMES:
            raise KeyError(provider)
        return getattr(self, provider)


class AnalysisRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: Optional[Grid] = None
    provider: Optional[str] = None
    api_key: Optional[str] = Field(None, alias="apiKey")
    model: Optional[str] = None
    base_url: Optional[str] = Field(None, alias="baseUrl")


class AnalysisResult(BaseModel):
    names: List[str] = []
    dates: List[str] = []
    times: List[str] = []
    insights: List[str] = []
    summary: str = ""


class AnalyzeCurrentRequest(BaseModel):
    provider: Optional[str] = None


class ProviderSelection(BaseModel):
    provider: str


class ConnectionTestResult(BaseModel):
    status: Literal["success", "error"]
    message: str


class AppStateSnapshot(BaseModel):
    file_data: Optional[FileData] = None
    is_processing: bool = False
    is_analyzing: bool = False
    progress: int = 0
    status: Status = "idle"
    file_name: str = ""
    error: str = ""
    selected_provider: str = "zai"
    api_config: Dict[str, Any] = {}
