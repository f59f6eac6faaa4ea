"""
Receipt Insights - Main Entry Point
Command line access to receipt upload, search and spending analytics.
"""

import argparse
import sys
import logging
from decimal import Decimal
from pathlib import Path
from urllib.parse import parse_qs, urlparse

# Add src directory to Python path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from receipt_insights.config import settings
from receipt_insights.database import DatabaseManager
from receipt_insights.analysis import ReceiptAnalyzer, SourceUnreadable, fetch_image_bytes
from receipt_insights.algorithms import SearchEngine, AnalyticsEngine
from receipt_insights.models import ReceiptFields
from receipt_insights.storage import LocalImageStore
from receipt_insights.service import ReceiptUploadService

logger = logging.getLogger(__name__)


def configure_logging():
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(settings.LOG_FILE),
            logging.StreamHandler()
        ]
    )


def local_image_fetcher(image_store: LocalImageStore):
    """Read served images straight from the local store, other sources over the network."""
    def fetch(image_source: str) -> bytes:
        blob_keys = parse_qs(urlparse(image_source).query).get("blob-key")
        if not blob_keys:
            return fetch_image_bytes(image_source)
        try:
            return image_store.path_for(blob_keys[0]).read_bytes()
        except OSError as e:
            raise SourceUnreadable() from e
    return fetch


def initialize_app():
    """Initialize the database and wire the application components."""
    db_manager = DatabaseManager(settings.DATABASE_PATH)
    db_manager.initialize_database()

    image_store = LocalImageStore()
    analyzer = ReceiptAnalyzer(fetch_image=local_image_fetcher(image_store))

    logger.info("Application initialized successfully")
    return {
        "uploads": ReceiptUploadService(db_manager, image_store, analyzer),
        "search": SearchEngine(db_manager),
        "analytics": AnalyticsEngine(db_manager),
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Receipt analysis and spending analytics")
    parser.add_argument("--user", required=True, help="User identifier")
    commands = parser.add_subparsers(dest="command", required=True)

    upload = commands.add_parser("upload", help="Analyze and record a receipt image")
    upload.add_argument("image", type=Path, help="JPEG receipt image")
    upload.add_argument("--label", help="Note to attach to the receipt")
    upload.add_argument("--price", type=Decimal, default=Decimal("0"))
    upload.add_argument("--store", default="")
    upload.add_argument("--category", action="append", default=[], dest="categories")

    search = commands.add_parser("search", help="Search recorded receipts")
    for name in ("timeZoneId", "category", "dateRange", "store", "min", "max", "pageToken"):
        search.add_argument(f"--{name}")

    commands.add_parser("analytics", help="Spending totals per store and category")
    return parser


def main(argv=None):
    """Main application function."""
    args = build_parser().parse_args(argv)
    configure_logging()
    app = initialize_app()

    if args.command == "upload":
        result = app["uploads"].process_upload(
            args.user,
            args.image.name,
            args.image.read_bytes(),
            label=args.label,
            fields=ReceiptFields(price=args.price, store=args.store, categories=args.categories),
        )
        print(result.model_dump_json(by_alias=True, indent=2))
        return 0 if result.success else 1

    if args.command == "search":
        raw_params = {k: v for k, v in vars(args).items() if k not in ("user", "command") and v is not None}
        raw_params["isNewSearch"] = "pageToken" not in raw_params
        page = app["search"].search(args.user, raw_params)
        print(page.model_dump_json(by_alias=True, indent=2))
        return 0

    analytics = app["analytics"].compute_analytics(args.user)
    print(analytics.model_dump_json(by_alias=True, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
