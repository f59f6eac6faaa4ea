"""
Upload completion: store the image, analyze it and record the receipt.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from .analysis import ReceiptAnalysisError, ReceiptAnalyzer
from .config import settings
from .criteria import to_epoch_millis
from .database import DatabaseManager
from .models import ReceiptCreate, ReceiptFields, UploadResult
from .storage import InvalidUpload, LocalImageStore

logger = logging.getLogger(__name__)

FieldExtractor = Callable[[str], ReceiptFields]


class ReceiptUploadService:
    """Turns an uploaded receipt image into a stored receipt record.

    A record is only written after the analysis succeeded; on any failure the
    stored image is removed and nothing is persisted.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        image_store: LocalImageStore,
        analyzer: ReceiptAnalyzer,
        external_base_url: Optional[str] = None,
        field_extractor: Optional[FieldExtractor] = None,
    ):
        self.db_manager = db_manager
        self.image_store = image_store
        self.analyzer = analyzer
        self.external_base_url = (external_base_url or settings.EXTERNAL_BASE_URL).rstrip("/")
        self.field_extractor = field_extractor
        self.logger = logger

    def image_url(self, image_ref: str) -> str:
        """Absolute URL the recognition service can fetch the image from."""
        return self.external_base_url + self.image_store.serving_path(image_ref)

    def process_upload(
        self,
        user_id: str,
        filename: str,
        content: bytes,
        label: Optional[str] = None,
        fields: Optional[ReceiptFields] = None,
        timestamp: Optional[int] = None,
    ) -> UploadResult:
        """Analyze and record one uploaded receipt.

        Args:
            user_id: Owner of the receipt
            filename: Original filename, must be a JPEG
            content: Raw image bytes
            label: Optional user note
            fields: User confirmed price, store and categories. When omitted
                they come from the field extractor, if any.
            timestamp: Purchase time in epoch milliseconds, defaults to now

        Returns:
            UploadResult with the stored receipt, or the errors

        Raises:
            StorageUnavailable: If the record store cannot be written. Any
                error other than a failed analysis or invalid data is re-raised
                after the stored image is removed.
        """
        start_time = datetime.now()

        try:
            image_ref = self.image_store.save(filename, content)
        except InvalidUpload as e:
            self.logger.warning(f"Valid JPEG file was not uploaded: {e}")
            return self._failure(str(e), start_time)

        try:
            analysis = self.analyzer.analyze(self.image_url(image_ref))
            if fields is None:
                fields = self.field_extractor(analysis.raw_text) if self.field_extractor else ReceiptFields()

            if timestamp is None:
                timestamp = to_epoch_millis(datetime.now(timezone.utc))
            receipt = ReceiptCreate(
                user_id=user_id,
                timestamp=timestamp,
                image_ref=self.image_store.serving_path(image_ref),
                price=fields.price,
                store=fields.store,
                categories=fields.categories,
                raw_text=analysis.raw_text,
                label=label,
            )
            receipt_id = self.db_manager.add_receipt(receipt)
        except ReceiptAnalysisError as e:
            self.image_store.delete(image_ref)
            return self._failure(str(e), start_time)
        except ValidationError as e:
            self.image_store.delete(image_ref)
            self.logger.warning(f"Receipt data failed validation: {e}")
            return self._failure(f"Invalid receipt data: {e.error_count()} error(s)", start_time)
        except BaseException:
            self.image_store.delete(image_ref)
            raise

        stored = self.db_manager.get_receipt(receipt_id)

        processing_time = (datetime.now() - start_time).total_seconds()
        self.logger.info(f"Recorded receipt {receipt_id} for user {user_id} in {processing_time:.2f} seconds")
        return UploadResult(success=True, receipt=stored, processing_time=processing_time)

    def _failure(self, error: str, start_time: datetime) -> UploadResult:
        return UploadResult(
            success=False,
            errors=[error],
            processing_time=(datetime.now() - start_time).total_seconds(),
        )
