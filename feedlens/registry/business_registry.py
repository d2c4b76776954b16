"""
Business Registry.

Directory of known businesses and their automated-analysis flag.
Backed by a JSON file with backup-and-restore on corruption.
"""

import json
import os
import shutil
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from feedlens.errors import InputError

logger = logging.getLogger(__name__)


@dataclass
class Business:
    """A business known to the analytics engine."""
    business_id: str
    name: str = ""
    auto_analysis: bool = False  # Included in the scheduled batch job

    @classmethod
    def from_dict(cls, data: dict) -> "Business":
        return cls(
            business_id=str(data["businessId"]),
            name=data.get("name", ""),
            auto_analysis=bool(data.get("autoAnalysis", False))
        )

    def to_dict(self) -> dict:
        return {
            "businessId": self.business_id,
            "name": self.name,
            "autoAnalysis": self.auto_analysis
        }


class BusinessRegistry:
    """
    Lookup of businesses by id.

    Resolves the business a trigger refers to and lists the businesses
    flagged for automated analysis.
    """

    def __init__(self, registry_path: str):
        """
        Initialize registry from disk or create new empty registry.

        Args:
            registry_path: Path to businesses.json
        """
        self.registry_path = str(registry_path)
        self.businesses: Dict[str, Business] = {}
        self.last_updated = None

        if os.path.exists(self.registry_path):
            self._load()
        else:
            logger.info(f"No business registry at {self.registry_path}, starting empty")

    def _load(self) -> None:
        try:
            with open(self.registry_path, 'r') as f:
                data = json.load(f)

            # Accept a bare list as well as {"businesses": [...]}
            rows = data if isinstance(data, list) else data.get("businesses", [])
            if isinstance(data, dict):
                self.last_updated = data.get("last_updated")

            self.businesses = {}
            for row in rows:
                business = Business.from_dict(row)
                self.businesses[business.business_id] = business

            logger.info(f"Loaded {len(self.businesses)} businesses from registry")

        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.error(f"Failed to load business registry: {e}")
            self._try_restore_from_backup()

    def _try_restore_from_backup(self) -> None:
        backup_path = f"{self.registry_path}.backup"
        if not os.path.exists(backup_path):
            logger.warning("No backup file found. Starting with empty business registry.")
            self.businesses = {}
            return

        logger.warning(f"Attempting to restore from backup: {backup_path}")
        try:
            with open(backup_path, 'r') as f:
                data = json.load(f)
            rows = data if isinstance(data, list) else data.get("businesses", [])
            self.businesses = {}
            for row in rows:
                business = Business.from_dict(row)
                self.businesses[business.business_id] = business
            shutil.copy(backup_path, self.registry_path)
            logger.info("Successfully restored business registry from backup")
        except (OSError, json.JSONDecodeError, KeyError, TypeError) as e:
            logger.error(f"Backup restoration failed: {e}. Starting with empty registry.")
            self.businesses = {}

    def get(self, business_id: Optional[str]) -> Business:
        """
        Resolve a business by id.

        Raises:
            InputError: If the id is missing or unknown
        """
        if not business_id or not str(business_id).strip():
            raise InputError("businessId required")

        business = self.businesses.get(str(business_id))
        if business is None:
            raise InputError(f"Business not found: {business_id}")
        return business

    def register(self, business_id: str, name: str = "", auto_analysis: bool = False) -> Business:
        """Add or update a business. Idempotent."""
        business = Business(business_id=str(business_id), name=name, auto_analysis=auto_analysis)
        self.businesses[business.business_id] = business
        logger.info(f"Registered business {business_id} (auto_analysis={auto_analysis})")
        return business

    def list_auto_analysis(self) -> List[Business]:
        """Businesses flagged for the scheduled batch job, in id order."""
        return sorted(
            (b for b in self.businesses.values() if b.auto_analysis),
            key=lambda b: b.business_id
        )

    def save(self) -> None:
        """
        Persist registry to disk with atomic write pattern.
        Creates backup before write.
        """
        self.last_updated = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

        if os.path.exists(self.registry_path):
            backup_path = f"{self.registry_path}.backup"
            shutil.copy(self.registry_path, backup_path)
            logger.debug(f"Created backup: {backup_path}")

        data = {
            "last_updated": self.last_updated,
            "businesses": [b.to_dict() for b in self.businesses.values()]
        }

        parent = os.path.dirname(self.registry_path)
        if parent:
            os.makedirs(parent, exist_ok=True)

        temp_path = f"{self.registry_path}.tmp"
        try:
            with open(temp_path, 'w') as f:
                json.dump(data, f, indent=2)
            os.replace(temp_path, self.registry_path)
            logger.info(f"Business registry saved: {len(self.businesses)} businesses")
        except OSError as e:
            logger.error(f"Failed to save business registry: {e}")
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise
