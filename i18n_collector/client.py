"""HTTP client for the remote translation-management service.

Every response is expected in the envelope ``{success, message, data,
error}``. Transport failures are retried according to a `RetryPolicy`;
failure envelopes and undecodable bodies are raised immediately.
"""

import json
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin

import requests

from i18n_collector.errors import (
    BadResponseFormatError,
    RemoteError,
    RemoteProtocolError,
    RemoteTransportError,
)
from i18n_collector.models import FileType, TranslationRecord, utc_now

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINTS: dict[str, str] = {
    "add": "/api/translations/add",
    "init": "/api/translations/init",
    "list": "/api/translations/list",
    "health": "/api/health",
}


@dataclass
class RetryPolicy:
    """How often and how long to wait when a request fails in transit.

    The wait before attempt ``n + 1`` is ``base_delay * n`` seconds.
    """

    max_attempts: int = 3
    base_delay: float = 0.1
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def delay(self, attempt: int) -> float:
        return self.base_delay * attempt


def _chunk_list(items: Sequence[Any], chunk_size: int) -> list[Sequence[Any]]:
    """Cut records into request batches; only the last batch may be short.

    Raises:
        ValueError: If ``chunk_size`` is below 1.
    """
    if chunk_size < 1:
        raise ValueError("batch_size must be at least 1.")
    return [items[i : i + chunk_size] for i in range(0, len(items), chunk_size)]


def _file_type_tag(record: TranslationRecord) -> str:
    return record.file_type.value if record.file_type else ""


class TranslationApiClient:
    """Client for the add / init / list / health endpoints."""

    def __init__(
        self,
        base_url: str,
        token: str,
        project_id: str,
        languages: Sequence[str] = (),
        timeout: float = 30,
        retry_policy: RetryPolicy | None = None,
        batch_delay: float = 0.1,
        endpoints: Mapping[str, str] | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.project_id = project_id
        self.languages = list(languages)
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.batch_delay = batch_delay
        self.endpoints = {**DEFAULT_ENDPOINTS, **(endpoints or {})}
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )

    def _url(self, endpoint: str) -> str:
        return urljoin(self.base_url, self.endpoints[endpoint].lstrip("/"))

    def _request(
        self,
        method: str,
        endpoint: str,
        payload: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        """Send a request and unwrap the response envelope.

        Raises:
            RemoteTransportError: If every attempt failed in transit.
            RemoteProtocolError: If the service answered ``success: false``.
            BadResponseFormatError: If the body is empty or not JSON.
        """
        url = self._url(endpoint)
        attempts = self.retry_policy.max_attempts

        for attempt in range(1, attempts + 1):
            try:
                response = self.session.request(
                    method, url, json=payload, params=params, timeout=self.timeout
                )
                response.raise_for_status()
            except requests.RequestException as e:
                logger.warning(
                    "Request %s %s failed (attempt %d/%d): %s",
                    method, url, attempt, attempts, e,
                )
                if attempt == attempts:
                    raise RemoteTransportError(
                        f"Request {method} {url} failed after {attempts} attempts: {e}",
                        attempts=attempts,
                    ) from e
                self.retry_policy.sleep(self.retry_policy.delay(attempt))
                continue

            return self._unwrap(response.text)

        raise RemoteTransportError(f"Request {method} {url} was never sent", attempts=0)

    @staticmethod
    def _unwrap(body: str) -> Any:
        if not body or not body.strip():
            raise BadResponseFormatError("Response body is empty")
        try:
            decoded = json.loads(body)
        except json.JSONDecodeError as e:
            raise BadResponseFormatError(f"Response is not valid JSON: {e}") from e

        if isinstance(decoded, dict) and "success" in decoded:
            if decoded["success"] is False:
                message = decoded.get("message") or "Request failed"
                details = decoded.get("error")
                if details:
                    message = f"{message}: {json.dumps(details, ensure_ascii=False)}"
                raise RemoteProtocolError(message, details=details)
            return decoded["data"] if decoded.get("data") is not None else decoded

        return decoded or {}

    def _format_for_add(self, records: Sequence[TranslationRecord]) -> list[dict]:
        return [
            {
                "key": r.key,
                "default_text": r.value,
                "source_file": r.source_file or "",
                "line_number": r.line_number or 0,
                "context": r.context or "",
                "module": r.module or "",
                "metadata": {
                    "file_type": _file_type_tag(r),
                    "created_at": r.created_at or utc_now(),
                },
            }
            for r in records
        ]

    def _format_for_init(self, records: Sequence[TranslationRecord]) -> list[dict]:
        return [
            {
                "key": r.key,
                # Flat stores are keyed by their source text.
                "default_text": r.key if r.file_type is FileType.FLAT else r.value,
                "value": r.value,
                "language": r.language,
                "module": r.module or "",
                "metadata": {
                    "file_type": _file_type_tag(r),
                    "created_at": r.created_at or utc_now(),
                },
            }
            for r in records
        ]

    def add_translations(self, records: Sequence[TranslationRecord]) -> Any:
        """Push newly found records."""
        logger.info("Adding %d translations to the remote service", len(records))
        payload = {
            "project_id": self.project_id,
            "languages": self.languages,
            "translations": self._format_for_add(records),
        }
        return self._request("POST", "add", payload=payload)

    def init_translations(self, records: Sequence[TranslationRecord]) -> Any:
        """Push resolved values with their language for first-time setup."""
        logger.info("Initializing %d translations on the remote service", len(records))
        payload = {
            "project_id": self.project_id,
            "translations": self._format_for_init(records),
        }
        return self._request("POST", "init", payload=payload)

    def get_translations(self, **filters: Any) -> list[dict]:
        """Fetch translations, e.g. ``get_translations(language="en")``.

        Returns:
            The ``data`` list, or an empty list if the body could not be
            parsed.

        Raises:
            RemoteTransportError: If the request failed in transit.
            RemoteProtocolError: If the service reported a failure.
        """
        params = {"project_id": self.project_id}
        params.update({k: v for k, v in filters.items() if v is not None})
        try:
            data = self._request("GET", "list", params=params)
        except BadResponseFormatError as e:
            logger.error("Could not parse translation list: %s", e)
            return []

        if not isinstance(data, list):
            logger.error("Translation list is not an array: %s", type(data).__name__)
            return []
        logger.info("Fetched %d translations", len(data))
        return data

    def _run_batches(
        self,
        records: Sequence[TranslationRecord],
        batch_size: int,
        send: Callable[[Sequence[TranslationRecord]], Any],
    ) -> list[Any]:
        batches = _chunk_list(list(records), batch_size)
        logger.info(
            "Uploading %d translations in %d batches of up to %d",
            len(records), len(batches), batch_size,
        )

        results: list[Any] = []
        for index, batch in enumerate(batches):
            logger.info("Processing batch %d/%d", index + 1, len(batches))
            try:
                results.append(send(batch))
            except RemoteError as e:
                logger.error("Batch %d failed: %s", index + 1, e)
                results.append({"success": False, "error": str(e), "batch_index": index})

            if index < len(batches) - 1:
                self.retry_policy.sleep(self.batch_delay)
        return results

    def batch_upload(self, records: Sequence[TranslationRecord], batch_size: int = 100) -> list[Any]:
        """Add records chunk by chunk; a failed chunk does not stop the rest."""
        return self._run_batches(records, batch_size, self.add_translations)

    def batch_init(self, records: Sequence[TranslationRecord], batch_size: int = 100) -> list[Any]:
        """Initialize records chunk by chunk; a failed chunk does not stop the rest."""
        return self._run_batches(records, batch_size, self.init_translations)

    def check_connection(self) -> bool:
        """Return True if the health endpoint answers with a non-empty object."""
        try:
            response = self._request("GET", "health")
        except RemoteError as e:
            logger.warning("Connection check failed: %s", e)
            return False

        if isinstance(response, dict):
            return response.get("status") == "ok" or bool(response)
        return bool(response)
