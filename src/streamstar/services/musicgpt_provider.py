"""
MusicGPT Provider for StreamStar
Task submission and conversion lookups against the MusicGPT public API
"""

import time
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field

from ..core.logging import provider_logger
from ..core.result import Result


class ProviderTask(BaseModel):
    """A task accepted by the provider; outputs arrive later by webhook"""
    task_id: str
    conversion_ids: List[str] = Field(default_factory=list)
    raw: Dict[str, Any] = Field(default_factory=dict)


class ConversionDetails(BaseModel):
    """Detail lookup for a single conversion"""
    success: bool
    conversion: Dict[str, Any] = Field(default_factory=dict)


class MusicGPTProvider:
    """MusicGPT API provider for song generation"""

    TASK_ID_KEYS = ("task_id", "taskId", "job_id", "id")
    CONVERSION_ID_KEYS = ("conversion_id_1", "conversion_id_2")

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        timeout: float = 30.0,
        conversion_type: str = "MUSIC_AI",
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.conversion_type = conversion_type
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self) -> Result[None]:
        """Initialize MusicGPT API client"""
        if not self.api_key:
            return Result.err("MusicGPT API key is required")

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "User-Agent": "StreamStar/1.0"
            }
        )
        return Result.ok(None)

    async def create_song(
        self,
        prompt: str,
        lyrics: Optional[str] = None,
        music_style: Optional[str] = None,
        is_instrumental: Optional[bool] = None,
        webhook_url: Optional[str] = None
    ) -> Result[ProviderTask]:
        """Register a generation task with MusicGPT"""
        if not self._client:
            return Result.err("MusicGPT client not initialized. Call initialize() first.")

        payload: Dict[str, Any] = {"prompt": prompt}
        if lyrics:
            payload["lyrics"] = lyrics
        if music_style:
            payload["music_style"] = music_style
        if is_instrumental is not None:
            payload["isInstrumental"] = is_instrumental
        if webhook_url:
            payload["webhook_url"] = webhook_url

        start = time.perf_counter()
        provider_logger.log_request_start("create_song", prompt=prompt[:100])

        try:
            response = await self._client.post("/MusicAI", json=payload)
        except httpx.HTTPError as e:
            provider_logger.log_request_error("create_song", str(e))
            return Result.err(f"MusicGPT request failed: {e}")

        if not response.is_success:
            error_msg = f"MusicGPT request failed with status {response.status_code}"
            try:
                error_data = response.json()
                detail = error_data.get("error") or error_data.get("message") or error_data.get("detail")
                if detail:
                    error_msg = str(detail)
            except ValueError:
                error_msg += f": {response.text[:200]}"
            provider_logger.log_request_error("create_song", error_msg, status_code=response.status_code)
            return Result.err(error_msg)

        try:
            data = response.json()
        except ValueError:
            provider_logger.log_request_error("create_song", "invalid JSON response")
            return Result.err("MusicGPT returned invalid JSON response")

        task = ProviderTask(
            task_id=self._extract_task_id(data),
            conversion_ids=[str(data[key]) for key in self.CONVERSION_ID_KEYS if data.get(key)],
            raw=data,
        )

        provider_logger.log_request_complete(
            "create_song",
            (time.perf_counter() - start) * 1000,
            task_id=task.task_id,
            conversion_ids=task.conversion_ids
        )
        return Result.ok(task)

    async def get_conversion(self, conversion_id: str) -> Result[ConversionDetails]:
        """Fetch conversion details by conversion id"""
        if not self._client:
            return Result.err("MusicGPT client not initialized. Call initialize() first.")

        start = time.perf_counter()
        provider_logger.log_request_start("get_conversion", conversion_id=conversion_id)

        try:
            response = await self._client.get(
                "/byId",
                params={"conversionType": self.conversion_type, "conversion_id": conversion_id}
            )
        except httpx.HTTPError as e:
            provider_logger.log_request_error("get_conversion", str(e), conversion_id=conversion_id)
            return Result.err(f"MusicGPT conversion lookup failed: {e}")

        if response.status_code != 200:
            provider_logger.log_request_error(
                "get_conversion",
                f"status {response.status_code}",
                conversion_id=conversion_id
            )
            return Result.err(f"MusicGPT conversion lookup failed with status {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            return Result.err("MusicGPT returned invalid JSON response")

        if not isinstance(data, dict) or data.get("success") is not True:
            return Result.err("MusicGPT conversion lookup was not successful")

        conversion = data.get("conversion")
        details = ConversionDetails(
            success=True,
            conversion=conversion if isinstance(conversion, dict) else {}
        )

        provider_logger.log_request_complete(
            "get_conversion",
            (time.perf_counter() - start) * 1000,
            conversion_id=conversion_id
        )
        return Result.ok(details)

    async def cleanup(self) -> None:
        """Close the HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _extract_task_id(self, data: Dict[str, Any]) -> str:
        for key in self.TASK_ID_KEYS:
            if data.get(key):
                return str(data[key])
        return f"musicgpt-{int(time.time() * 1000)}"
