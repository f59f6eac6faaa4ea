"""
Thin adapter around the Google Cloud Vision image annotator.
"""

import logging
from typing import Optional, Sequence

from google.cloud import vision

logger = logging.getLogger(__name__)


def build_text_detection_request(image_bytes: bytes) -> vision.AnnotateImageRequest:
    """Build a single-image request asking for text detection."""
    return vision.AnnotateImageRequest(
        image=vision.Image(content=image_bytes),
        features=[vision.Feature(type_=vision.Feature.Type.TEXT_DETECTION)],
    )


class RecognitionClient:
    """Calls the Vision batch annotation endpoint.

    Faults raised by the underlying client are not handled here.
    """

    def __init__(self, client: Optional[vision.ImageAnnotatorClient] = None):
        self._client = client
        self.logger = logger

    @property
    def client(self) -> vision.ImageAnnotatorClient:
        if self._client is None:
            self._client = vision.ImageAnnotatorClient()
            self.logger.info("Created Vision image annotator client")
        return self._client

    def batch_annotate_images(
        self, requests: Sequence[vision.AnnotateImageRequest]
    ) -> vision.BatchAnnotateImagesResponse:
        batch = list(requests)
        self.logger.debug(f"Sending {len(batch)} image annotation request(s)")
        return self.client.batch_annotate_images(requests=batch)
