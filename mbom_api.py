"""
mbom_api.py

Client for the eBOM -> mBOM conversion backend.

Every endpoint lives under {api_url}/api and answers with the envelope
{"success": bool, "message": str?, "data": any?, "error": str?}. Failed
requests and envelopes with success=false raise ConversionAPIError.
"""

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import requests

from mbom_models import (
    BomData,
    ConversionRecord,
    ConversionStatus,
    FieldCorrection,
    ManufacturingBomItem,
)
from mbom_settings import get_settings

logger = logging.getLogger(__name__)

ALLOWED_UPLOAD_EXTENSIONS = (".xlsx", ".xls", ".csv")
MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10MB


# ---------- Errors ----------

class ConversionAPIError(Exception):
    """A backend call failed (transport, HTTP status or success=false)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UploadRejected(ConversionAPIError):
    """The file was refused before being sent (type or size)."""


class ConversionFailed(ConversionAPIError):
    """The conversion reached the terminal 'failed' state; start a new one."""

    def __init__(self, message: str, status: Optional[ConversionStatus] = None):
        super().__init__(message)
        self.status = status


class ConversionTimeout(ConversionAPIError):
    """Polling gave up before the conversion reached a terminal state."""


def check_upload(file_name: str, size: int) -> None:
    """
    Raises:
        UploadRejected: unsupported extension or file larger than 10MB.
    """
    if not file_name.lower().endswith(ALLOWED_UPLOAD_EXTENSIONS):
        raise UploadRejected("Only .xlsx, .xls, and .csv files are supported")
    if size > MAX_UPLOAD_BYTES:
        raise UploadRejected("File size must be less than 10MB")


# ---------- Client ----------

class ConversionClient:
    """
    Thin wrapper around the backend's REST API.

    Example:
        client = ConversionClient()
        upload_id = client.upload_file("ebom.xlsx")
        conversion_id = client.start_conversion(upload_id)
        client.wait_for_completion(conversion_id)
        bom = client.get_bom_data(conversion_id)
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        settings = get_settings()
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self.timeout = timeout or settings.request_timeout
        self.session = session or requests.Session()

    # --- Transport ---

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api{path}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = self._url(path)
        kwargs.setdefault("timeout", self.timeout)
        logger.debug("%s %s", method, url)

        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise ConversionAPIError(f"{method} {path} failed: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not response.ok:
            detail = ""
            if isinstance(payload, dict):
                detail = payload.get("error") or payload.get("message") or ""
            raise ConversionAPIError(
                f"{method} {path} returned HTTP {response.status_code}"
                + (f": {detail}" if detail else ""),
                status_code=response.status_code,
            )

        if not isinstance(payload, dict):
            raise ConversionAPIError(f"{method} {path} returned a non-JSON body",
                                     status_code=response.status_code)

        if not payload.get("success", False):
            raise ConversionAPIError(
                payload.get("error") or payload.get("message") or f"{method} {path} was not successful",
                status_code=response.status_code,
            )
        return payload.get("data")

    # --- Upload / Convert ---

    def upload_file(self, source: Union[str, Path, Tuple[str, bytes]]) -> str:
        """
        Upload an eBOM file and return its upload id.

        Args:
            source: a path, or a (file_name, content) pair for in-memory files
        """
        if isinstance(source, tuple):
            file_name, content = source
        else:
            path = Path(source)
            file_name, content = path.name, path.read_bytes()

        check_upload(file_name, len(content))

        data = self._request("POST", "/upload", files={"bomFile": (file_name, content)})
        upload_id = (data or {}).get("uploadId")
        if not upload_id:
            raise ConversionAPIError("Upload response did not include an uploadId")
        logger.info("Uploaded %s (%d bytes) as %s", file_name, len(content), upload_id)
        return upload_id

    def start_conversion(self, upload_id: str) -> str:
        data = self._request("POST", "/convert", json={"uploadId": upload_id})
        conversion_id = (data or {}).get("conversionId")
        if not conversion_id:
            raise ConversionAPIError("Conversion response did not include a conversionId")
        logger.info("Started conversion %s for upload %s", conversion_id, upload_id)
        return conversion_id

    def get_status(self, conversion_id: str) -> ConversionStatus:
        data = self._request("GET", f"/convert/status/{conversion_id}") or {}
        if not isinstance(data, Mapping):
            raise ConversionAPIError(f"Status for {conversion_id} is not an object: {data!r}")
        stages = data.get("stages")
        if stages is not None and not isinstance(stages, Mapping):
            raise ConversionAPIError(f"Status for {conversion_id} has malformed stages: {stages!r}")
        return ConversionStatus.from_dict(dict({"conversionId": conversion_id}, **data))

    def wait_for_completion(self, conversion_id: str,
                            poll_interval: Optional[float] = None,
                            timeout: Optional[float] = None,
                            on_update: Optional[Callable[[ConversionStatus], None]] = None,
                            sleep: Callable[[float], None] = time.sleep,
                            clock: Callable[[], float] = time.monotonic) -> ConversionStatus:
        """
        Poll the status endpoint until the conversion completes.

        Args:
            conversion_id: id returned by start_conversion
            poll_interval: seconds between polls (settings default: 2)
            timeout: give up after this many seconds (settings default: 600)
            on_update: called with every status received

        Returns:
            The final 'completed' status.

        Raises:
            ConversionFailed: the conversion ended in 'failed'
            ConversionTimeout: still processing after `timeout` seconds
        """
        settings = get_settings()
        poll_interval = poll_interval or settings.poll_interval
        timeout = timeout or settings.poll_timeout
        deadline = clock() + timeout

        while True:
            status = self.get_status(conversion_id)
            if on_update is not None:
                on_update(status)

            if status.status == "completed":
                logger.info("Conversion %s completed", conversion_id)
                return status
            if status.status == "failed":
                raise ConversionFailed(
                    status.error_message or f"Conversion {conversion_id} failed", status=status
                )

            if clock() + poll_interval > deadline:
                raise ConversionTimeout(
                    f"Conversion {conversion_id} still {status.status} after {timeout:.0f}s"
                )
            sleep(poll_interval)

    # --- Results ---

    def get_bom_data(self, conversion_id: str) -> BomData:
        data = self._request("GET", f"/convert/bom/{conversion_id}") or {}
        bom = BomData.from_dict(data)
        logger.info("Loaded %d eBOM / %d mBOM items for %s",
                    len(bom.ebom), len(bom.mbom), conversion_id)
        return bom

    def get_explanation(self, conversion_id: str) -> Dict[str, Any]:
        """Free-text summary payload: typically summary, keyChanges and reasoning."""
        data = self._request("GET", f"/convert/explanation/{conversion_id}")
        return data if isinstance(data, dict) else {"summary": data}

    def save_edits(self, conversion_id: str, items: Iterable[ManufacturingBomItem]) -> Any:
        """Send the full edited mBOM back in one batch."""
        changes = [item.to_dict() for item in items]
        result = self._request("PATCH", f"/convert/bom/{conversion_id}", json={"changes": changes})
        logger.info("Saved %d mBOM items for %s", len(changes), conversion_id)
        return result

    def submit_feedback(self, conversion_id: str, corrections: Iterable[FieldCorrection],
                        should_learn: bool = True) -> Any:
        payload = {
            "conversionId": conversion_id,
            "corrections": [c.to_dict() for c in corrections],
            "shouldLearn": should_learn,
        }
        return self._request("POST", "/convert/feedback", json=payload)

    # --- History ---

    def list_history(self, page: int = 1, limit: int = 20,
                     search: Optional[str] = None) -> Tuple[List[ConversionRecord], Dict[str, Any]]:
        """
        Returns:
            (records, pagination) as reported by the backend
        """
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if search:
            params["search"] = search
        data = self._request("GET", "/history", params=params) or {}
        records = [ConversionRecord.from_dict(r) for r in data.get("conversions") or []]
        return records, data.get("pagination") or {}

    def delete_conversion(self, conversion_id: str) -> Any:
        result = self._request("DELETE", f"/history/{conversion_id}")
        logger.info("Deleted conversion %s", conversion_id)
        return result
