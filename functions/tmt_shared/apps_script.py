"""
Google Apps Script Write Client
===============================

Write path for every sheet the app uses. All writes go to an Apps Script
web app acting as a multiplexed REST proxy: one POST endpoint, a form field
``action`` selecting the operation, ``sheetName`` selecting the tab, and a
JSON-encoded positional payload (``rowData`` / ``rowsData`` / ``tasks``).

Implementation:
- Connection pooling via requests.Session
- Connect-level retry only; a request that reached the script is never
  resent, since writes carry no idempotency key
- Fire-and-forget mode: an unreadable response (timeout, non-JSON body)
  counts as success
- Never raises - always returns a ScriptCallResult

Usage:
    from tmt_shared.apps_script import get_script_client

    client = get_script_client()
    result = client.insert_row(
        sheet_name=SheetName.PRODUCTION,
        row_data=["01/06/2024 10:00:00", "H-101", ...],
        correlation_id="trace-123",
        fire_and_forget=True,
    )
"""

import os
import json
import logging
import time
import threading
from typing import Optional, Dict, Any, List
from dataclasses import dataclass
from enum import Enum
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .sheet_config import SheetName, TASK_BATCH_SIZE, DRIVE_FOLDER_URL
from .gviz_client import DELEGATION_SHEETS
from .helpers import parse_int_safe

logger = logging.getLogger(__name__)


class ScriptAction(str, Enum):
    """Actions understood by the Apps Script proxy."""
    INSERT = "insert"
    INSERT_MULTIPLE = "insertMultiple"
    UPDATE_TASKS = "updateTasks"
    UPLOAD_FILE = "uploadFile"
    UPLOAD_IMAGE = "uploadImage"
    UPDATE_SALES_DATA = "updateSalesData"
    UPDATE_TIMESTAMP = "updateTimestamp"
    GET_LAST_TASK_ID = "getLastTaskId"


@dataclass
class ScriptCallResult:
    """Result of an Apps Script call."""

    success: bool
    action: ScriptAction
    correlation_id: str
    sheet_name: Optional[str] = None
    response_status: Optional[int] = None
    response_body: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    assumed: bool = False  # success assumed, response unreadable
    rows_written: int = 0
    elapsed_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "action": self.action.value,
            "correlation_id": self.correlation_id,
            "sheet_name": self.sheet_name,
            "response_status": self.response_status,
            "error_message": self.error_message,
            "assumed": self.assumed,
            "rows_written": self.rows_written,
            "elapsed_ms": round(self.elapsed_ms, 2)
        }


@dataclass
class ScriptClientConfig:
    """Configuration for the Apps Script client."""

    # Web app URLs (from environment)
    script_url: Optional[str] = None
    delegation_script_url: Optional[str] = None

    # Drive folder for delegation attachments
    drive_folder_id: Optional[str] = None

    # Connect retries only
    connect_retries: int = 2
    retry_backoff_factor: float = 0.5

    # Timeout settings (seconds)
    connect_timeout: float = 5.0
    read_timeout: float = 30.0

    @classmethod
    def from_environment(cls) -> "ScriptClientConfig":
        """Load configuration from environment variables."""
        script_url = os.environ.get("APPS_SCRIPT_URL")
        return cls(
            script_url=script_url,
            delegation_script_url=os.environ.get("DELEGATION_SCRIPT_URL", script_url),
            drive_folder_id=os.environ.get("DRIVE_FOLDER_ID"),
            connect_retries=int(os.environ.get("SCRIPT_CONNECT_RETRIES", "2")),
            connect_timeout=float(os.environ.get("SCRIPT_CONNECT_TIMEOUT", "5.0")),
            read_timeout=float(os.environ.get("SCRIPT_READ_TIMEOUT", "30.0")),
        )

    @property
    def drive_folder_url(self) -> Optional[str]:
        """Browser URL of the attachment folder, as ``uploadFile`` expects it."""
        if not self.drive_folder_id:
            return None
        return DRIVE_FOLDER_URL.format(folder_id=self.drive_folder_id)


class AppsScriptClient:
    """
    Client for the Apps Script write proxy.

    Every public method returns a ScriptCallResult; failures are reported,
    never raised.
    """

    def __init__(self, config: Optional[ScriptClientConfig] = None):
        self.config = config or ScriptClientConfig.from_environment()
        self._session = self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a session that retries connection failures only."""
        session = requests.Session()

        retry_strategy = Retry(
            total=self.config.connect_retries,
            connect=self.config.connect_retries,
            read=0,
            status=0,
            other=0,
            backoff_factor=self.config.retry_backoff_factor,
            allowed_methods=["POST"],
            raise_on_status=False
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        session.headers.update({"Accept": "application/json"})

        return session

    def url_for(self, sheet_name: Optional[str]) -> Optional[str]:
        """Pick the web app that owns ``sheet_name``."""
        if sheet_name and sheet_name in {s.value for s in DELEGATION_SHEETS}:
            return self.config.delegation_script_url or self.config.script_url
        return self.config.script_url

    # ============== Actions ==============

    def insert_row(
        self,
        sheet_name: str,
        row_data: List[Any],
        correlation_id: str,
        fire_and_forget: bool = False
    ) -> ScriptCallResult:
        """Append one positional row (action ``insert``)."""
        result = self._call(
            ScriptAction.INSERT,
            sheet_name,
            {"rowData": json.dumps(row_data)},
            correlation_id,
            fire_and_forget=fire_and_forget
        )
        if result.success:
            result.rows_written = 1
        return result

    def insert_rows(
        self,
        sheet_name: str,
        rows: List[List[Any]],
        correlation_id: str,
        batch_size: int = TASK_BATCH_SIZE
    ) -> ScriptCallResult:
        """
        Append many rows in batches (action ``insertMultiple``).

        Stops at the first failed batch; ``rows_written`` counts the rows
        of the batches that succeeded before it.
        """
        written = 0
        result = ScriptCallResult(
            success=True,
            action=ScriptAction.INSERT_MULTIPLE,
            correlation_id=correlation_id,
            sheet_name=getattr(sheet_name, "value", sheet_name)
        )

        for start in range(0, len(rows), batch_size):
            batch = rows[start:start + batch_size]
            batch_no = start // batch_size + 1
            logger.info(f"[{correlation_id}] Writing batch {batch_no} ({len(batch)} rows) to '{result.sheet_name}'")

            result = self._call(
                ScriptAction.INSERT_MULTIPLE,
                sheet_name,
                {"rowsData": json.dumps(batch)},
                correlation_id
            )
            if not result.success:
                logger.error(f"[{correlation_id}] Batch {batch_no} failed after {written} rows: {result.error_message}")
                result.rows_written = written
                return result
            written += len(batch)

        result.rows_written = written
        return result

    def update_timestamp(
        self,
        sheet_name: str,
        heat_no: str,
        timestamp: str,
        column_letter: str,
        correlation_id: str,
        fire_and_forget: bool = True
    ) -> ScriptCallResult:
        """Stamp ``column_letter`` on the row matching ``heat_no`` (action ``updateTimestamp``)."""
        return self._call(
            ScriptAction.UPDATE_TIMESTAMP,
            sheet_name,
            {"heatNo": heat_no, "timestamp": timestamp, "columnIndex": column_letter},
            correlation_id,
            fire_and_forget=fire_and_forget
        )

    def update_tasks(
        self,
        sheet_name: str,
        tasks: List[Dict[str, Any]],
        correlation_id: str
    ) -> ScriptCallResult:
        """Bulk-edit task rows: ``[{rowIndex, updates: {colX: value}}]`` (action ``updateTasks``)."""
        return self._call(
            ScriptAction.UPDATE_TASKS,
            sheet_name,
            {"tasks": json.dumps(tasks)},
            correlation_id
        )

    def upload_file(
        self,
        sheet_name: str,
        task_id: str,
        file_name: str,
        file_data: str,
        row_index: int,
        correlation_id: str,
        folder_url: Optional[str] = None
    ) -> ScriptCallResult:
        """Upload a base64 file against a task row (action ``uploadFile``)."""
        fields = {
            "taskId": task_id,
            "fileName": file_name,
            "fileData": file_data,
            "rowIndex": str(row_index),
        }
        if folder_url:
            fields["folderUrl"] = folder_url
        return self._call(ScriptAction.UPLOAD_FILE, sheet_name, fields, correlation_id)

    def upload_image(
        self,
        image_data: str,
        file_name: str,
        row_index: Any,
        correlation_id: str,
        sheet_name: str = SheetName.DELEGATION_DONE.value
    ) -> ScriptCallResult:
        """
        Upload a base64 image to the configured Drive folder (action ``uploadImage``).

        The script answers ``{success, fileUrl}``.
        """
        fields = {
            "imageData": image_data,
            "fileName": file_name,
            "folderId": self.config.drive_folder_id or "",
            "rowIndex": "" if row_index is None else str(row_index),
        }
        return self._call(ScriptAction.UPLOAD_IMAGE, sheet_name, fields, correlation_id)

    def update_sales_data(
        self,
        sheet_name: str,
        row_data: List[Dict[str, Any]],
        correlation_id: str
    ) -> ScriptCallResult:
        """Mark source rows as handled (action ``updateSalesData``)."""
        return self._call(
            ScriptAction.UPDATE_SALES_DATA,
            sheet_name,
            {"rowData": json.dumps(row_data)},
            correlation_id
        )

    def get_last_task_id(self, sheet_name: str, correlation_id: str) -> int:
        """Highest numeric task id in ``sheet_name``; 0 when unknown."""
        result = self._call(ScriptAction.GET_LAST_TASK_ID, sheet_name, {}, correlation_id)
        body = result.response_body or {}
        if result.success and body.get("lastTaskId") is not None:
            return parse_int_safe(body.get("lastTaskId"), 0)
        logger.warning(f"[{correlation_id}] Could not read last task id from '{sheet_name}', starting from 0")
        return 0

    # ============== Transport ==============

    def _call(
        self,
        action: ScriptAction,
        sheet_name: Optional[str],
        fields: Dict[str, str],
        correlation_id: str,
        fire_and_forget: bool = False
    ) -> ScriptCallResult:
        """
        POST one action to the proxy.

        Fire-and-forget calls treat a timeout or an unreadable body as
        success; other calls require ``{"success": true}`` in the response.
        """
        sheet_name = getattr(sheet_name, "value", sheet_name)
        url = self.url_for(sheet_name)

        if not url:
            logger.warning(f"[{correlation_id}] APPS_SCRIPT_URL not configured - skipping {action.value}")
            return ScriptCallResult(
                success=False,
                action=action,
                correlation_id=correlation_id,
                sheet_name=sheet_name,
                error_message="Apps Script URL not configured"
            )

        form = {"action": action.value, **fields}
        if sheet_name:
            form["sheetName"] = sheet_name

        start_time = time.time()

        try:
            logger.info(
                f"[{correlation_id}] Calling {action.value} on '{sheet_name}'",
                extra={"action": action.value, "correlation_id": correlation_id}
            )

            response = self._session.post(
                url,
                data=form,
                timeout=(self.config.connect_timeout, self.config.read_timeout)
            )

            elapsed_ms = (time.time() - start_time) * 1000

            response_body = None
            try:
                parsed = response.json()
                if isinstance(parsed, dict):
                    response_body = parsed
            except ValueError:
                pass

            if not response.ok:
                logger.warning(
                    f"[{correlation_id}] {action.value} returned non-success "
                    f"(status={response.status_code}, elapsed={elapsed_ms:.0f}ms)"
                )
                return ScriptCallResult(
                    success=False,
                    action=action,
                    correlation_id=correlation_id,
                    sheet_name=sheet_name,
                    response_status=response.status_code,
                    response_body=response_body,
                    error_message=f"Apps Script returned status {response.status_code}",
                    elapsed_ms=elapsed_ms
                )

            if response_body is None:
                if fire_and_forget:
                    logger.info(f"[{correlation_id}] {action.value} sent (fire-and-forget, response unreadable)")
                    return ScriptCallResult(
                        success=True,
                        action=action,
                        correlation_id=correlation_id,
                        sheet_name=sheet_name,
                        response_status=response.status_code,
                        assumed=True,
                        elapsed_ms=elapsed_ms
                    )
                return ScriptCallResult(
                    success=False,
                    action=action,
                    correlation_id=correlation_id,
                    sheet_name=sheet_name,
                    response_status=response.status_code,
                    error_message="Unreadable response from Apps Script",
                    elapsed_ms=elapsed_ms
                )

            if response_body.get("success"):
                logger.info(
                    f"[{correlation_id}] {action.value} succeeded "
                    f"(status={response.status_code}, elapsed={elapsed_ms:.0f}ms)"
                )
                return ScriptCallResult(
                    success=True,
                    action=action,
                    correlation_id=correlation_id,
                    sheet_name=sheet_name,
                    response_status=response.status_code,
                    response_body=response_body,
                    elapsed_ms=elapsed_ms
                )

            error = response_body.get("error") or "Apps Script reported failure"
            logger.warning(f"[{correlation_id}] {action.value} failed: {error}")
            return ScriptCallResult(
                success=False,
                action=action,
                correlation_id=correlation_id,
                sheet_name=sheet_name,
                response_status=response.status_code,
                response_body=response_body,
                error_message=str(error),
                elapsed_ms=elapsed_ms
            )

        except requests.exceptions.Timeout as e:
            elapsed_ms = (time.time() - start_time) * 1000

            # A connect timeout means the request never reached the script
            if fire_and_forget and not isinstance(e, requests.exceptions.ConnectTimeout):
                logger.info(
                    f"[{correlation_id}] {action.value} timed out (fire-and-forget mode) "
                    f"- write may still complete"
                )
                return ScriptCallResult(
                    success=True,
                    action=action,
                    correlation_id=correlation_id,
                    sheet_name=sheet_name,
                    error_message="Timeout (fire-and-forget - write may still complete)",
                    assumed=True,
                    elapsed_ms=elapsed_ms
                )
            logger.error(f"[{correlation_id}] {action.value} timed out: {e}")
            return ScriptCallResult(
                success=False,
                action=action,
                correlation_id=correlation_id,
                sheet_name=sheet_name,
                error_message=f"Timeout: {str(e)}",
                elapsed_ms=elapsed_ms
            )

        except requests.exceptions.ConnectionError as e:
            elapsed_ms = (time.time() - start_time) * 1000
            logger.error(f"[{correlation_id}] {action.value} connection error: {e}")
            return ScriptCallResult(
                success=False,
                action=action,
                correlation_id=correlation_id,
                sheet_name=sheet_name,
                error_message=f"Connection error: {str(e)}",
                elapsed_ms=elapsed_ms
            )

        except requests.exceptions.RequestException as e:
            elapsed_ms = (time.time() - start_time) * 1000
            logger.exception(f"[{correlation_id}] {action.value} unexpected error: {e}")
            return ScriptCallResult(
                success=False,
                action=action,
                correlation_id=correlation_id,
                sheet_name=sheet_name,
                error_message=f"Unexpected error: {str(e)}",
                elapsed_ms=elapsed_ms
            )

    def close(self):
        """Close the session and release resources."""
        if self._session:
            self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


# Module-level singleton (thread-safe)
_script_client: Optional[AppsScriptClient] = None
_script_client_lock = threading.Lock()


def get_script_client() -> AppsScriptClient:
    """
    Get the singleton AppsScriptClient instance (thread-safe).

    Returns:
        AppsScriptClient configured from environment
    """
    global _script_client
    if _script_client is None:
        with _script_client_lock:
            if _script_client is None:
                _script_client = AppsScriptClient()
    return _script_client


def reset_script_client():
    """Reset the singleton (for testing)."""
    global _script_client
    with _script_client_lock:
        if _script_client is not None:
            _script_client.close()
        _script_client = None
