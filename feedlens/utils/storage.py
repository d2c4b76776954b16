"""
Storage utility.

JSON-file implementations of the feedback store and the report store, plus
debug and export helpers.
"""

import json
import os
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pandas as pd

from feedlens.errors import PersistenceError
from feedlens.models.feedback import FeedbackItem
from feedlens.models.report import Report

logger = logging.getLogger(__name__)


def _safe_name(value: str) -> str:
    return "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in str(value))


class JsonFeedbackStore:
    """
    Read access to stored feedback.

    Layout: data/feedback/<business_id>.json, a list of feedback documents.
    """

    def __init__(self, data_root: str):
        """
        Initialize feedback store.

        Args:
            data_root: Root data directory (e.g., /path/to/data)
        """
        self.data_root = str(data_root)
        self.feedback_dir = os.path.join(self.data_root, "feedback")
        os.makedirs(self.feedback_dir, exist_ok=True)

        logger.info(f"Initialized JsonFeedbackStore with data_root={self.data_root}")

    def _path(self, business_id: str) -> str:
        return os.path.join(self.feedback_dir, f"{_safe_name(business_id)}.json")

    def fetch(
        self,
        business_id: str,
        since: Optional[datetime] = None,
        limit: int = 500
    ) -> List[FeedbackItem]:
        """
        Fetch feedback for a business, newest first.

        Args:
            business_id: Business identifier
            since: Only items created at or after this time (None = all)
            limit: Maximum number of items returned

        Returns:
            List of FeedbackItem ordered by recency (may be empty)
        """
        filepath = self._path(business_id)
        if not os.path.exists(filepath):
            logger.debug(f"No feedback file for business {business_id}")
            return []

        with open(filepath, 'r') as f:
            documents = json.load(f)

        items = []
        for doc in documents:
            try:
                items.append(FeedbackItem.from_dict(doc))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed feedback document for {business_id}: {e}")

        if since is not None:
            items = [item for item in items if item.created_at >= since]

        items.sort(key=lambda item: item.created_at, reverse=True)
        return items[:limit]

    def add(self, items: List[FeedbackItem]) -> None:
        """
        Append feedback items to their businesses' files.

        Used by the seed command; the analytics engine never writes feedback.
        """
        by_business: Dict[str, List[FeedbackItem]] = {}
        for item in items:
            by_business.setdefault(item.business_id, []).append(item)

        for business_id, new_items in by_business.items():
            filepath = self._path(business_id)
            documents = []
            if os.path.exists(filepath):
                with open(filepath, 'r') as f:
                    documents = json.load(f)
            documents.extend(item.to_dict() for item in new_items)

            try:
                with open(filepath, 'w') as f:
                    json.dump(documents, f, indent=2)
                logger.info(f"Saved {len(new_items)} feedback items for {business_id}")
            except OSError as e:
                logger.error(f"Failed to save feedback for {business_id}: {e}")
                raise


class JsonReportStore:
    """
    Append-only report persistence.

    Layout: data/reports/<business_id>/<generated_at>_<id>.json
    """

    def __init__(self, data_root: str):
        self.data_root = str(data_root)
        self.reports_dir = os.path.join(self.data_root, "reports")
        self.raw_ai_dir = os.path.join(self.data_root, "ai_raw")
        os.makedirs(self.reports_dir, exist_ok=True)

        logger.info(f"Initialized JsonReportStore with data_root={self.data_root}")

    def create(self, report: Report) -> Report:
        """
        Persist a new report.

        Args:
            report: Assembled report without id

        Returns:
            Copy of the report carrying its new id

        Raises:
            PersistenceError: If the report could not be written
        """
        stored = replace(report, id=uuid.uuid4().hex)
        business_dir = os.path.join(self.reports_dir, _safe_name(report.business_id))
        stamp = report.generated_at.strftime("%Y%m%dT%H%M%S%fZ")
        filepath = os.path.join(business_dir, f"{stamp}_{stored.id}.json")

        try:
            os.makedirs(business_dir, exist_ok=True)
            # "x" mode: reports are never overwritten
            with open(filepath, 'x') as f:
                json.dump(stored.to_dict(), f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save report for {report.business_id}: {e}")
            raise PersistenceError(f"Failed to save report for {report.business_id}: {e}") from e

        logger.info(f"Saved report {stored.id} to {filepath}")
        return stored

    def list_reports(self, business_id: str) -> List[Report]:
        """Load all reports of a business, oldest first."""
        business_dir = os.path.join(self.reports_dir, _safe_name(business_id))
        if not os.path.isdir(business_dir):
            return []

        reports = []
        for filename in sorted(os.listdir(business_dir)):
            if not filename.endswith('.json'):
                continue
            with open(os.path.join(business_dir, filename), 'r') as f:
                reports.append(Report.from_dict(json.load(f)))
        return reports

    def save_raw_ai_output(self, business_id: str, raw_output: str) -> Optional[str]:
        """
        Keep unparsable summarizer output for debugging.

        Returns:
            Path of the written file, or None if writing failed
        """
        os.makedirs(self.raw_ai_dir, exist_ok=True)
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        filepath = os.path.join(self.raw_ai_dir, f"ai_raw_{_safe_name(business_id)}_{stamp}.txt")
        try:
            with open(filepath, 'w') as f:
                f.write(raw_output or "")
            logger.info(f"Saved raw AI output to {filepath}")
            return filepath
        except OSError as e:
            logger.warning(f"Failed to save raw AI output for {business_id}: {e}")
            return None


def export_table_csv(df: pd.DataFrame, output_path: str) -> str:
    """Write a table to CSV, creating the parent directory."""
    parent = os.path.dirname(output_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    df.to_csv(output_path, index=False)
    logger.info(f"Table saved to {output_path} ({len(df)} rows)")
    return output_path
