"""AI analysis of parsed spreadsheet data.

Every supported provider exposes an OpenAI-compatible chat-completions
API, so a single ``openai.AsyncOpenAI`` client pointed at the provider's
base URL serves all of them. The per-request ``baseUrl`` overrides the
provider default.
"""
import json
import re
from typing import List, Optional

import openai
from pydantic import ValidationError

from models.schemas import AnalysisRequest, AnalysisResult, ConnectionTestResult, Grid, ProviderConfig
from utils.logging import get_logger, timing_decorator
from utils.settings import get_settings

logger = get_logger(__name__)

DEFAULT_BASE_URLS = {
    "zai": "https://api.z.ai/api/paas/v4/",
    "deepseek": "https://api.deepseek.com",
    "gemini": "https://generativelanguage.googleapis.com/v1beta/openai/",
}

SYSTEM_PROMPT = "You are a data analysis expert. Always answer with valid JSON."

PROMPT_TEMPLATE = """Analyze the following data extracted from a file and provide:

1. A list of the names identified (only valid full names)
2. A list of the dates identified (in their original format)
3. A list of the times identified (in their original format)
4. Insights about the data (patterns, anomalies, trends)
5. A general summary of the data

Data:
{data}

Answer in JSON with the following structure:
{{
  "names": ["name1", "name2", ...],
  "dates": ["date1", "date2", ...],
  "times": ["time1", "time2", ...],
  "insights": ["insight1", "insight2", ...],
  "summary": "general summary"
}}"""

MISSING_PARAMETERS_MESSAGE = "Missing required parameters"
PARSE_FAILURE_INSIGHT = "Could not parse the AI response"
EMPTY_RESPONSE_SUMMARY = "No response received"

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


class AnalysisError(Exception):
    """A user-facing failure of an analysis request."""


def _cell_text(cell) -> str:
    if cell is None:
        return ""
    if isinstance(cell, bool):
        return "true" if cell else "false"
    return str(cell)


def build_sample(data: Grid, max_rows: Optional[int] = None) -> List[List[str]]:
    """First rows of the grid with every cell rendered as text."""
    if max_rows is None:
        max_rows = get_settings().max_analysis_rows
    return [
        [_cell_text(cell) for cell in row]
        for row in data[:max_rows]
    ]


def build_prompt(sample: List[List[str]]) -> str:
    data_string = "\n".join(" | ".join(row) for row in sample)
    return PROMPT_TEMPLATE.format(data=data_string)


def fallback_result(content: str) -> AnalysisResult:
    return AnalysisResult(
        insights=[PARSE_FAILURE_INSIGHT],
        summary=content or EMPTY_RESPONSE_SUMMARY,
    )


def parse_analysis(content: Optional[str]) -> AnalysisResult:
    """Parse the model's answer, falling back to a placeholder result.

    A Markdown code fence around the JSON is tolerated. Anything that is
    not a JSON object with the expected fields yields the fallback.
    """
    content = content or ""
    text = content.strip()
    fence_match = _JSON_FENCE_RE.search(text)
    if fence_match:
        text = fence_match.group(1).strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning(f"AI response is not valid JSON: {exc}")
        return fallback_result(content)

    if not isinstance(parsed, dict):
        logger.warning(f"AI response is JSON but not an object: {type(parsed).__name__}")
        return fallback_result(content)

    try:
        return AnalysisResult.model_validate(parsed)
    except ValidationError as exc:
        logger.warning(f"AI response has an unexpected shape: {exc.error_count()} errors")
        return fallback_result(content)


def build_client(provider: str, api_key: str, base_url: Optional[str] = None) -> openai.AsyncOpenAI:
    if provider not in DEFAULT_BASE_URLS:
        raise AnalysisError(f"Unknown provider: {provider}")
    return openai.AsyncOpenAI(
        api_key=api_key,
        base_url=base_url or DEFAULT_BASE_URLS[provider],
        timeout=get_settings().ai_timeout_seconds,
    )


def validate_request(request: AnalysisRequest) -> None:
    if request.data is None or not request.provider or not request.api_key or not request.model:
        raise AnalysisError(MISSING_PARAMETERS_MESSAGE)
    if request.provider not in DEFAULT_BASE_URLS:
        raise AnalysisError(f"Unknown provider: {request.provider}")


@timing_decorator
async def analyze_data(request: AnalysisRequest) -> AnalysisResult:
    """Send a sample of the grid to the provider and parse its answer.

    Raises AnalysisError for invalid requests. Provider and network errors
    from the openai client propagate to the caller.
    """
    validate_request(request)

    prompt = build_prompt(build_sample(request.data))
    client = build_client(request.provider, request.api_key, request.base_url)

    logger.info(f"Requesting analysis from {request.provider} ({request.model}) for {len(request.data)} rows")
    completion = await client.chat.completions.create(
        model=request.model,
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
    )

    content = ""
    if completion.choices:
        content = completion.choices[0].message.content or ""
    return parse_analysis(content)


async def check_connection(provider: str, config: ProviderConfig) -> ConnectionTestResult:
    """Check that a provider accepts the configured credentials."""
    if not config.api_key:
        return ConnectionTestResult(status="error", message="API key required")

    try:
        client = build_client(provider, config.api_key, config.base_url)
        await client.models.list()
    except AnalysisError as e:
        return ConnectionTestResult(status="error", message=str(e))
    except openai.OpenAIError as e:
        logger.warning(f"Connection test for {provider} failed: {e}")
        return ConnectionTestResult(status="error", message=f"Connection error: {e}")

    return ConnectionTestResult(status="success", message="Connection successful")


@timing_decorator
async def analyze_current(store, provider: Optional[str] = None):
    """Analyze the store's current grid with a provider from the saved config.

    On success the store's file data is replaced by a fresh extraction of
    the current grid plus the AI analysis, and that FileData is returned.
    """
    if provider:
        store.set_selected_provider(provider)
    provider = store.selected_provider

    if store.is_processing:
        raise AnalysisError("A file is still being processed. Please wait for it to finish.")
    if not store.current_raw_data:
        raise AnalysisError("No data to analyze. Please upload a file first.")

    saved_config = store.read_saved_config()
    if saved_config is None:
        raise AnalysisError("No API configuration saved. Please configure the APIs first.")

    provider_config = saved_config.for_provider(provider)
    if not provider_config.enabled or not provider_config.api_key:
        raise AnalysisError(f"The {provider} API is not configured correctly.")

    store.set_analyzing(True)
    store.set_error("")
    try:
        result = await analyze_data(AnalysisRequest(
            data=store.current_raw_data,
            provider=provider,
            api_key=provider_config.api_key,
            model=provider_config.model,
            base_url=provider_config.base_url,
        ))
        return store.apply_analysis(result, provider)
    finally:
        store.set_analyzing(False)
