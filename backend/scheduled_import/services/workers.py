from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx
from pydantic import ValidationError

from scheduled_import.core.config import settings
from scheduled_import.core.errors import (
    CHUNK_ERRORS_BY_KIND,
    ChunkError,
    ConversionDegraded,
    DestinationWriteError,
    MalformedRecord,
    SourceUnreachable,
)
from scheduled_import.schemas.worker import ChunkResult, ConversionResult

logger = logging.getLogger(__name__)

_GATEWAY_STATUSES = {502, 503, 504}


class ImportWorker(Protocol):
    def invoke(self, source_url: str, offset: int) -> ChunkResult:
        ...


class ConversionWorker(Protocol):
    def invoke(self, scope_filter: str) -> ConversionResult:
        ...


def _auth_headers(token: Optional[str]) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"} if token else {}


def _error_detail(response: httpx.Response) -> tuple[str, Optional[str]]:
    """(message, error_kind) from a worker error body, falling back to the raw text."""
    try:
        body = response.json()
    except ValueError:
        return (response.text[:500] or response.reason_phrase), None
    if not isinstance(body, dict):
        return str(body)[:500], None
    message = body.get("error") or body.get("error_message") or body.get("details") or response.reason_phrase
    return str(message), body.get("error_kind")


def _chunk_error_from_response(response: httpx.Response) -> ChunkError:
    message, kind = _error_detail(response)
    message = f"HTTP {response.status_code}: {message}"
    if kind in CHUNK_ERRORS_BY_KIND:
        return CHUNK_ERRORS_BY_KIND[kind](message)
    if response.status_code in _GATEWAY_STATUSES:
        return SourceUnreachable(message)
    if response.is_client_error:
        return MalformedRecord(message)
    return DestinationWriteError(message)


class HttpImportWorker:
    """Calls the import worker over HTTP, one chunk per call."""

    def __init__(
        self,
        url: str,
        *,
        token: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._headers = _auth_headers(token)
        self._client = client or httpx.Client(timeout=timeout)

    def invoke(self, source_url: str, offset: int) -> ChunkResult:
        try:
            response = self._client.post(
                self.url,
                json={"csvUrl": source_url, "offset": offset},
                headers=self._headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise SourceUnreachable(f"Import worker timed out after {self.timeout}s") from exc
        except httpx.TransportError as exc:
            raise SourceUnreachable(f"Import worker unreachable: {exc}") from exc

        if response.is_error:
            raise _chunk_error_from_response(response)

        try:
            body = response.json()
        except ValueError as exc:
            raise MalformedRecord("Import worker returned a non-JSON body") from exc

        if isinstance(body, dict) and body.get("status") == "failed":
            message = body.get("error_message") or body.get("error") or "import worker reported failure"
            kind = body.get("error_kind")
            raise CHUNK_ERRORS_BY_KIND.get(kind, DestinationWriteError)(str(message))

        try:
            return ChunkResult.model_validate(body)
        except ValidationError as exc:
            raise MalformedRecord(f"Invalid import worker response: {exc.error_count()} error(s)") from exc

    def close(self) -> None:
        self._client.close()


class HttpConversionWorker:
    """Calls the conversion worker. Never raises anything but ConversionDegraded."""

    def __init__(
        self,
        url: str,
        *,
        token: Optional[str] = None,
        timeout: float = 300.0,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._headers = _auth_headers(token)
        self._client = client or httpx.Client(timeout=timeout)

    def invoke(self, scope_filter: str) -> ConversionResult:
        try:
            response = self._client.post(
                self.url,
                json={"stateFilter": scope_filter},
                headers=self._headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise ConversionDegraded(f"Conversion worker timed out after {self.timeout}s") from exc
        except httpx.TransportError as exc:
            raise ConversionDegraded(f"Conversion worker unreachable: {exc}") from exc

        if response.is_error:
            message, _ = _error_detail(response)
            raise ConversionDegraded(f"Conversion failed: HTTP {response.status_code}: {message}")

        try:
            return ConversionResult.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ConversionDegraded(f"Invalid conversion worker response: {exc}") from exc

    def close(self) -> None:
        self._client.close()


def build_import_worker() -> HttpImportWorker:
    return HttpImportWorker(
        settings.IMPORT_WORKER_URL,
        token=settings.WORKER_AUTH_TOKEN,
        timeout=settings.WORKER_TIMEOUT_SECONDS,
    )


def build_conversion_worker() -> HttpConversionWorker:
    return HttpConversionWorker(
        settings.CONVERSION_WORKER_URL,
        token=settings.WORKER_AUTH_TOKEN,
        timeout=settings.CONVERSION_TIMEOUT_SECONDS,
    )
