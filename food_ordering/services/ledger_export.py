"""
Order Ledger Excel Export with Concurrency Control

Appends every ledger event (placed, status_changed, removed) as one row of
``<data_directory>/<ledger_filename>``. Workers serialize on a file lock.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd
from filelock import FileLock, Timeout

from food_ordering.core.config import get_settings

logger = logging.getLogger(__name__)


class LedgerExporter:
    """Thread-safe Excel ledger writer."""

    LEDGER_COLUMNS = [
        "event",
        "order_id",
        "purchaser_name",
        "purchaser_email",
        "items",
        "total_amount",
        "payment_method",
        "previous_status",
        "status",
        "created_at",
        "updated_at",
        "exported_at",
    ]

    @staticmethod
    def ledger_path() -> Path:
        settings = get_settings()
        return Path(settings.data_directory) / settings.ledger_filename

    @classmethod
    def lock_path(cls) -> Path:
        path = cls.ledger_path()
        return path.with_name(path.name + ".lock")

    @classmethod
    def _ensure_data_dir(cls) -> None:
        """Create data directory if needed."""
        data_dir = cls.ledger_path().parent
        if not data_dir.exists():
            data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {data_dir}")

    @classmethod
    def _load_or_create_df(cls, file_path: Path) -> pd.DataFrame:
        """Load existing file or create new DataFrame."""
        if file_path.exists():
            try:
                return pd.read_excel(file_path, engine="openpyxl")
            except Exception as e:
                logger.warning(f"Error reading {file_path}: {e}")
                return pd.DataFrame(columns=cls.LEDGER_COLUMNS)
        return pd.DataFrame(columns=cls.LEDGER_COLUMNS)

    @classmethod
    def export_event(cls, event_data: dict[str, Any]) -> dict[str, Any]:
        """Append one event row with file locking."""
        cls._ensure_data_dir()

        order_id = event_data.get("order_id", 0)
        event = event_data.get("event", "unknown")
        timeout = get_settings().excel_lock_timeout
        ledger_file = cls.ledger_path()

        result = {
            "success": False,
            "message": "",
            "order_id": order_id,
            "event": event,
            "exported_at": None,
        }

        try:
            with FileLock(str(cls.lock_path()), timeout=timeout):
                df = cls._load_or_create_df(ledger_file)

                export_time = datetime.now().isoformat()
                new_row = {
                    "event": event,
                    "order_id": order_id,
                    "purchaser_name": event_data.get("purchaser_name"),
                    "purchaser_email": event_data.get("purchaser_email"),
                    "items": json.dumps(event_data.get("lines") or []),
                    "total_amount": event_data.get("total_amount"),
                    "payment_method": event_data.get("payment_method"),
                    "previous_status": event_data.get("previous_status"),
                    "status": event_data.get("status"),
                    "created_at": event_data.get("created_at"),
                    "updated_at": event_data.get("updated_at"),
                    "exported_at": export_time,
                }

                if df.empty:
                    df = pd.DataFrame([new_row], columns=cls.LEDGER_COLUMNS)
                else:
                    df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True)
                df.to_excel(str(ledger_file), index=False, engine="openpyxl")

                logger.info(f"Order #{order_id} {event} written to ledger")

                result["success"] = True
                result["message"] = f"Order #{order_id} {event} exported"
                result["exported_at"] = export_time

        except Timeout:
            result["message"] = f"Lock timeout ({timeout}s)"
            logger.error(f"Lock timeout for order #{order_id}")

        return result

    @classmethod
    def read_events(cls) -> list[dict[str, Any]]:
        """Get all exported events."""
        ledger_file = cls.ledger_path()
        if not ledger_file.exists():
            return []
        df = pd.read_excel(ledger_file, engine="openpyxl")
        return df.to_dict("records")
