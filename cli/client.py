from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the telemetry service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def latest(self) -> Dict[str, Any]:
        return self._get_json("/readings/latest")

    def stats(self, metric: str, minutes: Optional[float] = None) -> Dict[str, Any]:
        params = {} if minutes is None else {"minutes": minutes}
        return self._get_json(f"/metrics/{metric}/stats", params=params)

    def session(
        self, gap_minutes: Optional[float] = None, max_points: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        if gap_minutes is not None:
            params["gap_minutes"] = gap_minutes
        if max_points is not None:
            params["max_points"] = max_points
        return self._get_json("/readings/session", params=params)

    def summary(self) -> Dict[str, Any]:
        return self._get_json("/summary")

    def export_csv(self, day: Optional[str] = None, hour: Optional[int] = None) -> str:
        params: Dict[str, Any] = {}
        if day is not None:
            params["date"] = day
        if hour is not None:
            params["hour"] = hour
        try:
            response = self._client.get("/readings/export.csv", params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.text

    def link(self, action: Optional[str] = None) -> Dict[str, Any]:
        if action is None:
            return self._get_json("/link")
        try:
            response = self._client.post(f"/link/{action}")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
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
