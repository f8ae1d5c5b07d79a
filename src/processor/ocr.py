"""Screenshot text extraction client.

Posts a screenshot (as a base64 data URL) to an external extraction
service and returns the recovered text, which is then imported exactly
like pasted text.

Configuration comes from the environment unless given explicitly:

- ``SPRINT_DECK_OCR_URL``: endpoint URL (required)
- ``SPRINT_DECK_OCR_TOKEN``: bearer token (required)
- ``SPRINT_DECK_OCR_TIMEOUT``: request timeout in seconds (default 60)
"""

import base64
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path

import requests

from .engine import ImportRequest, ImportResult, import_paste
from .errors import NetworkFailure, ParseFailure

DEFAULT_TIMEOUT = 60.0


@dataclass
class OCRConfig:
    url: str
    token: str
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls, url=None, token=None, timeout=None) -> "OCRConfig":
        """Build a config from arguments, falling back to the environment.

        Raises:
            ValueError: If the URL or token is missing.
        """
        url = url or os.environ.get("SPRINT_DECK_OCR_URL")
        token = token or os.environ.get("SPRINT_DECK_OCR_TOKEN")
        if timeout is None:
            timeout = float(os.environ.get("SPRINT_DECK_OCR_TIMEOUT") or DEFAULT_TIMEOUT)
        if not url or not token:
            raise ValueError(
                "Missing OCR settings. Set SPRINT_DECK_OCR_URL and "
                "SPRINT_DECK_OCR_TOKEN, or pass --ocr-url / --ocr-token.")
        return cls(url=url, token=token, timeout=float(timeout))


def image_to_data_url(path) -> str:
    """Encode an image file as a ``data:<mime>;base64,...`` URL."""
    path = Path(path)
    mime = mimetypes.guess_type(path.name)[0] or "image/png"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime};base64,{encoded}"


class OCRClient:
    """Thin client for the screenshot extraction endpoint."""

    def __init__(self, config: OCRConfig, session: requests.Session | None = None):
        self.config = config
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Authorization": f"Bearer {config.token}",
        })

    def extract_text(self, image_data: str) -> str:
        """Send a data URL and return the extracted text.

        Raises:
            NetworkFailure: On connection errors, timeouts, or non-2xx
                responses (carrying the server's ``error`` message if any).
            ParseFailure: If the service found no text in the image.
        """
        try:
            r = self.session.post(self.config.url, json={"imageData": image_data},
                                  timeout=self.config.timeout)
        except requests.Timeout as exc:
            raise NetworkFailure(
                f"Screenshot extraction timed out after {self.config.timeout:g}s") from exc
        except requests.RequestException as exc:
            raise NetworkFailure(f"Error processing screenshot: {exc}") from exc

        if not r.ok:
            message = "Failed to extract data from screenshot"
            try:
                body = r.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("error"):
                message = str(body["error"])
            raise NetworkFailure(f"{message} (HTTP {r.status_code})")

        try:
            body = r.json()
        except ValueError as exc:
            raise NetworkFailure("Screenshot extraction returned invalid JSON") from exc

        text = (body or {}).get("extractedText") or ""
        if not text.strip():
            raise ParseFailure(
                "Could not extract data from the image. "
                "Please try pasting text data directly.")
        return text

    def extract_file(self, path) -> str:
        return self.extract_text(image_to_data_url(path))


def import_screenshot(document, slide_id: int, image_path, client: OCRClient,
                      strict_table_match: bool = False) -> ImportResult:
    """Extract text from a screenshot and import it into *slide_id*."""
    text = client.extract_file(image_path)
    return import_paste(document, ImportRequest(
        slide_id=slide_id, text=text, strict_table_match=strict_table_match))
