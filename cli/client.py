from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig

READINGS_PATH = "/api/sensor-data/"


class ApiClient:
    """Minimal HTTP client for the telemetry service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def list_readings(
        self, device_id: Optional[str] = None, limit: int = 20, skip: int = 0
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"limit": limit, "skip": skip}
        if device_id:
            params["device_id"] = device_id
        return self._get(READINGS_PATH, params=params)

    def device_view(
        self,
        device_id: str,
        range_token: str,
        page: int = 1,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"range": range_token, "page": page}
        if start:
            params["start"] = start
        if end:
            params["end"] = end
        return self._get(f"{READINGS_PATH}device/{device_id}/view", params=params)

    def fleet_stats(self, fail_fast: bool = False) -> List[Dict[str, Any]]:
        params = {"fail_fast": "true"} if fail_fast else None
        return self._get(f"{READINGS_PATH}devices/stats", params=params)

    def ingest(
        self,
        device_id: str,
        frequency: float,
        voltage_phasors: List[Dict[str, Any]],
        current_phasors: List[Dict[str, Any]],
        timestamp: Optional[str] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "device_id": device_id,
            "measurements": {
                "voltage_phasors": voltage_phasors,
                "current_phasors": current_phasors,
                "frequency": frequency,
            },
        }
        if timestamp:
            body["timestamp"] = timestamp
        try:
            response = self._client.post(READINGS_PATH, json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
