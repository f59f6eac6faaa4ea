"""
Receipt image analysis.
Fetches an uploaded receipt image, sends it to the text recognition service
and validates the response before anything is persisted.
"""

import logging
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote, urlparse

import httpx
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError

from .config import settings
from .models import AnalysisResult
from .recognition import RecognitionClient, build_text_detection_request

logger = logging.getLogger(__name__)


class ReceiptAnalysisError(Exception):
    """Base class for analysis failures. Each subclass has a fixed message."""

    message = "Receipt analysis failed."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)


class SourceUnreadable(ReceiptAnalysisError):
    message = "Unable to read receipt image."


class RequestFailed(ReceiptAnalysisError):
    message = "Image annotation request failed."


class EmptyBatchResponse(ReceiptAnalysisError):
    message = "Received empty batch image annotation response."


class ResponseError(ReceiptAnalysisError):
    message = "Received image annotation response with error."


class EmptyTextAnnotations(ReceiptAnalysisError):
    message = "Received image annotation response without text annotations."


def fetch_image_bytes(image_source: str, timeout: Optional[float] = None) -> bytes:
    """Read image bytes from an http(s) URL, a file:// URL or a local path.

    Raises:
        SourceUnreadable: If the image cannot be read
    """
    parsed = urlparse(str(image_source))
    try:
        if parsed.scheme in ("http", "https"):
            response = httpx.get(
                str(image_source),
                timeout=timeout if timeout is not None else settings.IMAGE_FETCH_TIMEOUT,
                follow_redirects=True,
            )
            response.raise_for_status()
            return response.content
        if parsed.scheme == "file":
            return Path(unquote(parsed.path)).read_bytes()
        return Path(image_source).read_bytes()
    except (httpx.HTTPError, OSError) as e:
        logger.warning(f"Could not read receipt image {image_source}: {e}")
        raise SourceUnreadable() from e


class ReceiptAnalyzer:
    """Extracts the raw transcript of a receipt image."""

    def __init__(
        self,
        recognition_client: Optional[RecognitionClient] = None,
        fetch_image: Callable[[str], bytes] = fetch_image_bytes,
    ):
        self.recognition_client = recognition_client or RecognitionClient()
        self.fetch_image = fetch_image
        self.logger = logger

    def analyze(self, image_source: str) -> AnalysisResult:
        """Return the full-image transcript of the receipt at ``image_source``.

        Args:
            image_source: URL or path of the uploaded image

        Returns:
            AnalysisResult holding the raw text

        Raises:
            ReceiptAnalysisError: One of its subclasses, depending on which
                validation step failed. Nothing is retried here.
        """
        image_bytes = self.fetch_image(image_source)
        request = build_text_detection_request(image_bytes)

        try:
            batch_response = self.recognition_client.batch_annotate_images([request])
        except (GoogleAPIError, GoogleAuthError) as e:
            self.logger.warning(f"{RequestFailed.message} ({e})")
            raise RequestFailed() from e

        if not batch_response.responses:
            self._fail(EmptyBatchResponse)

        # Only one image is sent per batch.
        response = batch_response.responses[0]
        if response.error.code or response.error.message or response.error.details:
            self.logger.warning(
                f"{ResponseError.message} code={response.error.code} message={response.error.message!r}"
            )
            raise ResponseError()

        if not response.text_annotations:
            self._fail(EmptyTextAnnotations)

        # Index 0 is the transcript of the whole image, the rest are single tokens.
        raw_text = response.text_annotations[0].description
        self.logger.info(f"Extracted {len(raw_text)} characters from {image_source}")
        return AnalysisResult(raw_text=raw_text)

    def _fail(self, error_type):
        self.logger.warning(error_type.message)
        raise error_type()
