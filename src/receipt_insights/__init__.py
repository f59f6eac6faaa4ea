"""
Receipt analysis and spending analytics.
"""

from .models import Receipt, ReceiptCreate, ReceiptFields, SearchCriteria, SearchPage, SpendingAnalytics
from .database import DatabaseManager, StorageUnavailable
from .analysis import ReceiptAnalyzer, ReceiptAnalysisError
from .algorithms import SearchEngine, AnalyticsEngine
from .storage import LocalImageStore, InvalidUpload
from .service import ReceiptUploadService

__all__ = [
    'Receipt',
    'ReceiptCreate',
    'ReceiptFields',
    'SearchCriteria',
    'SearchPage',
    'SpendingAnalytics',
    'DatabaseManager',
    'StorageUnavailable',
    'ReceiptAnalyzer',
    'ReceiptAnalysisError',
    'SearchEngine',
    'AnalyticsEngine',
    'LocalImageStore',
    'InvalidUpload',
    'ReceiptUploadService',
]
