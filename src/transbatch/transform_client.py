"""HTTP client for the remote image transformation service."""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional

import requests

from .constants import (
    DEFAULT_TRANSLATE_URL,
    TRANSFORM_MAX_ATTEMPTS,
    TRANSFORM_RETRY_DELAY,
    TRANSFORM_TIMEOUT,
)
from .errors import TransformFailedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransformOptions:
    """Fixed parameter set sent with every file in a run."""

    model: str
    target_lang: str = "en"
    font: str = "wildwords"
    text_align: str = "auto"
    stroke_disabled: bool = False
    inpaint_only: bool = False
    min_font_size: int = 12


def safe_header(value: str) -> str:
    """Drop control and non-ASCII characters so the value is a legal header."""
    return "".join(c for c in str(value) if 32 <= ord(c) < 127)


def _flag(value: bool) -> str:
    return "true" if value else "false"


class TransformClient:
    """Submit files to the transformation service with retry.

    A response counts as success only if the HTTP status is 2xx AND the
    ``success`` response header is ``true``. Transport errors and
    application-level rejections share the same retry budget.
    """

    def __init__(
        self,
        api_key: str,
        endpoint: str = DEFAULT_TRANSLATE_URL,
        session: Optional[requests.Session] = None,
        max_attempts: int = TRANSFORM_MAX_ATTEMPTS,
        retry_delay: float = TRANSFORM_RETRY_DELAY,
        timeout: float = TRANSFORM_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key.strip()
        self.endpoint = endpoint
        self.session = session or requests.Session()
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._sleep = sleep

    def build_headers(self, options: TransformOptions) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {safe_header(self.api_key)}",
            "target_lang": safe_header(options.target_lang),
            "translator": safe_header(options.model),
            "font": safe_header(options.font),
            "text_align": safe_header(options.text_align),
            "stroke_disabled": _flag(options.stroke_disabled),
            "inpaint_only": _flag(options.inpaint_only),
            "min_font_size": str(int(options.min_font_size)),
        }

    def transform(self, path: Path, options: TransformOptions) -> bytes:
        """Upload one file and return the transformed bytes.

        Args:
            path: File to upload
            options: Transformation parameters

        Returns:
            Response body of the first successful attempt

        Raises:
            TransformFailedError: After max_attempts unsuccessful attempts
            OSError: If the file cannot be opened
        """
        path = Path(path)
        headers = self.build_headers(options)
        last_status = 0
        last_body = ""

        for attempt in range(1, self.max_attempts + 1):
            logger.debug("Uploading %s (attempt %d/%d)", path.name, attempt, self.max_attempts)
            try:
                # Reopened per attempt: the previous upload consumed the handle
                with path.open("rb") as fh:
                    response = self.session.post(
                        self.endpoint,
                        files={"file": (path.name, fh)},
                        headers=headers,
                        timeout=self.timeout,
                    )
            except requests.RequestException as e:
                last_status, last_body = 0, f"Network error: {e}"
                logger.warning("Transform request for %s failed: %s", path.name, e)
            else:
                success = response.headers.get("success", "false").strip().lower() == "true"
                if response.ok and success:
                    logger.debug("Transform succeeded for %s (%d bytes)", path.name, len(response.content))
                    return response.content
                last_status, last_body = response.status_code, response.text[:500]
                logger.warning(
                    "Transform rejected for %s (status=%s, success=%s): %s",
                    path.name, response.status_code, success, last_body[:200],
                )

            if attempt < self.max_attempts:
                logger.info("Retrying %s in %.0fs (%d/%d)", path.name, self.retry_delay, attempt, self.max_attempts)
                self._sleep(self.retry_delay)

        raise TransformFailedError(
            f"Transform failed for {path.name} after {self.max_attempts} attempts "
            f"(last status {last_status}): {last_body}",
            status=last_status,
            body=last_body,
            attempts=self.max_attempts,
        )

    def close(self) -> None:
        self.session.close()
