# cartridge/external_content.py
from __future__ import annotations

import re
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Protocol, runtime_checkable

import requests

from cartridge.errors import ExternalContentError
from logging_setup import get_logger
from models import ContentExport, Course
from utils.api import ServiceAPI

NEW_QUIZZES_SERVICE_KEY = "quizzes2"

_SERVICE_KEY_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.-]*")


def check_service_key(key: str) -> str:
    """Service keys name external_content/<key>.json, so they must be a plain file stem."""
    if not isinstance(key, str) or not _SERVICE_KEY_RE.fullmatch(key) or ".." in key:
        raise ExternalContentError(f"invalid external service key: {key!r}")
    return key


@runtime_checkable
class ExternalContentService(Protocol):
    """
    A service that owns course content outside the cartridge (e.g. an external
    tool) and can export it on request. Handles are opaque to the migrator.
    """
    service_key: str

    def applies_to_course(self, course: Course) -> bool: ...

    def begin_export(self, course: Course, opts: Dict[str, Any]) -> Any: ...

    def export_completed(self, handle: Any) -> bool: ...

    def retrieve_export(self, handle: Any) -> Any: ...


class Migrator:
    """
    Starts external exports early and collects them late.

    begin_exports() submits every applicable service's begin_export to a thread
    pool and returns at once with {service_key: Future}; the caller keeps doing
    local work and only blocks in retrieve_exported_content().

    Polling for completion (and giving up) is this class's job, not the caller's:
    a service that errors or never finishes is recorded on the export request and
    left out of the result.
    """

    def __init__(
        self,
        services: Optional[Iterable[ExternalContentService]] = None,
        *,
        max_workers: int = 4,
        poll_interval: float = 1.0,
        max_attempts: int = 30,
    ) -> None:
        self.services: Dict[str, ExternalContentService] = {}
        for service in services or ():
            self.register(service)
        self.max_workers = max_workers
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self._pool: Optional[ThreadPoolExecutor] = None

    def register(self, service: ExternalContentService) -> None:
        self.services[check_service_key(service.service_key)] = service

    def _executor(self) -> ThreadPoolExecutor:
        if self._pool is None:
            self._pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="cc-external")
        return self._pool

    def shutdown(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def begin_exports(
        self,
        course: Course,
        content_export: ContentExport,
        *,
        selective: bool = False,
        exported_assets: Optional[List[str]] = None,
    ) -> Dict[str, Future]:
        log = get_logger(stage="external_content", course_id=course.id)
        opts: Dict[str, Any] = {"selective": selective, "export_id": content_export.id}
        if selective:
            opts["exported_assets"] = list(exported_assets or ())

        pending: Dict[str, Future] = {}
        for key, service in self.services.items():
            if not service.applies_to_course(course):
                continue
            pending[key] = self._executor().submit(service.begin_export, course, dict(opts))
            log.info("began external export", extra={"service": key, "selective": selective})
        return pending

    def retrieve_exported_content(
        self, content_export: ContentExport, pending: Optional[Dict[str, Future]]
    ) -> Dict[str, Any]:
        log = get_logger(stage="external_content", course_id=getattr(content_export.course, "id", "-"))
        exported: Dict[str, Any] = {}
        for key, future in (pending or {}).items():
            service = self.services.get(key)
            if service is None or future is None:
                continue
            try:
                handle = future.result()
                if handle is None:
                    continue
                self._wait_for_completion(service, handle)
                exported[key] = service.retrieve_export(handle)
            except (ExternalContentError, requests.RequestException, ValueError) as e:
                content_export.add_error(f"Error exporting content from external service {key}.", e)
                log.warning("external export failed", extra={"service": key, "error": str(e)})
                continue
            log.info("retrieved external export", extra={"service": key})
        return exported

    def _wait_for_completion(self, service: ExternalContentService, handle: Any) -> None:
        for attempt in range(1, self.max_attempts + 1):
            if service.export_completed(handle):
                return
            if attempt < self.max_attempts:
                time.sleep(self.poll_interval)
        raise ExternalContentError(
            f"external export for {service.service_key} did not complete after {self.max_attempts} checks"
        )


class HttpContentService:
    """
    External tool reachable over HTTP:
      POST {base}/exports                 -> {"id": ..., "workflow_state": ...}
      GET  {base}/exports/{id}            -> {"workflow_state": "completed" | "running" | "failed"}
      GET  {base}/exports/{id}/content    -> JSON content to embed in the cartridge
    """

    def __init__(self, service_key: str, base_url: str, token: str, api: Optional[ServiceAPI] = None) -> None:
        self.service_key = service_key
        self.api = api or ServiceAPI(base_url, token)

    def applies_to_course(self, course: Course) -> bool:
        return True

    def begin_export(self, course: Course, opts: Dict[str, Any]) -> Dict[str, Any]:
        payload = {"context_id": course.id, "context_type": "Course", **opts}
        data = self.api.post_json("exports", payload=payload)
        if not isinstance(data, dict) or "id" not in data:
            raise ExternalContentError(f"{self.service_key}: begin export returned no id")
        return data

    def export_completed(self, handle: Dict[str, Any]) -> bool:
        status = self.api.get_json(f"exports/{handle['id']}")
        state = (status or {}).get("workflow_state")
        if state == "failed":
            raise ExternalContentError(f"{self.service_key}: export {handle['id']} failed")
        return state == "completed"

    def retrieve_export(self, handle: Dict[str, Any]) -> Any:
        return self.api.get_json(f"exports/{handle['id']}/content")


def new_quizzes_service_for(content_export: ContentExport, token: str) -> Optional[HttpContentService]:
    """Service for quiz-engine content when the export asked for it and says where to find it."""
    url = content_export.settings.get("new_quizzes_export_url")
    if not url or not content_export.include_new_quizzes_in_export():
        return None
    return HttpContentService(NEW_QUIZZES_SERVICE_KEY, url, token)


__all__ = [
    "ExternalContentService",
    "Migrator",
    "HttpContentService",
    "new_quizzes_service_for",
    "NEW_QUIZZES_SERVICE_KEY",
    "check_service_key",
]
