from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass

import httpx

logger = logging.getLogger("integrations.tracker")


class TrackerError(RuntimeError):
    pass


@dataclass(frozen=True)
class TrackerConfig:
    base_url: str
    api_user: str
    api_token: str
    timeout_seconds: float


def LoadTrackerConfig() -> TrackerConfig | None:
    base_url = os.getenv("TRACKER_BASE_URL", "").strip().rstrip("/")
    api_user = os.getenv("TRACKER_API_USER", "").strip()
    api_token = os.getenv("TRACKER_API_TOKEN", "").strip()
    if not base_url:
        return None
    if not (api_user and api_token):
        logger.warning("TRACKER_BASE_URL is set but API credentials are missing")
        return None

    timeout_raw = os.getenv("TRACKER_TIMEOUT_SECONDS", "").strip()
    try:
        timeout_seconds = float(timeout_raw) if timeout_raw else 8.0
    except ValueError:
        timeout_seconds = 8.0

    return TrackerConfig(
        base_url=base_url,
        api_user=api_user,
        api_token=api_token,
        timeout_seconds=timeout_seconds,
    )


def _ExtractReason(response: httpx.Response) -> str:
    if not response.content:
        return f"HTTP {response.status_code}"
    try:
        parsed = response.json()
    except json.JSONDecodeError:
        return response.text[:255] or f"HTTP {response.status_code}"
    if isinstance(parsed, dict):
        messages = parsed.get("errorMessages") or []
        if messages:
            return str(messages[0])[:255]
    return f"HTTP {response.status_code}"


class TrackerClient:
    """Thin REST client for the issue tracker the notes are attached to."""

    def __init__(self, config: TrackerConfig, transport: httpx.BaseTransport | None = None) -> None:
        self._config = config
        self._client = httpx.Client(
            base_url=config.base_url,
            auth=(config.api_user, config.api_token),
            timeout=config.timeout_seconds,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    def __enter__(self) -> "TrackerClient":
        return self

    def __exit__(self, *_exc) -> None:
        self.Close()

    def Close(self) -> None:
        self._client.close()

    def _Get(self, path: str, params: dict | None = None):
        try:
            response = self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise TrackerError(f"Tracker request failed: {exc}") from exc
        if response.status_code != 200:
            raise TrackerError(f"Tracker request failed: {_ExtractReason(response)}")
        return response.json()

    def GetProjectKey(self, issue_key: str) -> str:
        issue = self._Get(f"/rest/api/3/issue/{issue_key}", params={"fields": "project"})
        project = ((issue or {}).get("fields") or {}).get("project") or {}
        project_key = project.get("key")
        if not project_key:
            raise TrackerError("Issue does not contain project information")
        return project_key

    def ListAssignableUsers(self, project_key: str) -> list[dict]:
        users = self._Get("/rest/api/3/user/assignable/search", params={"project": project_key})
        return [
            {
                "AccountId": entry.get("accountId"),
                "DisplayName": entry.get("displayName"),
                "AvatarUrl": (entry.get("avatarUrls") or {}).get("48x48"),
            }
            for entry in users or []
            if entry.get("accountId")
        ]

    def NotifyIssue(self, issue_key: str, payload: dict) -> None:
        try:
            response = self._client.post(
                f"/rest/api/3/issue/{issue_key}/notify",
                json=payload,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise TrackerError(f"Tracker notify failed: {exc}") from exc
        if response.status_code >= 300:
            raise TrackerError(
                f"Tracker notify failed: {response.status_code} {_ExtractReason(response)}"
            )


def BuildTrackerClient() -> TrackerClient | None:
    config = LoadTrackerConfig()
    if config is None:
        return None
    return TrackerClient(config)
