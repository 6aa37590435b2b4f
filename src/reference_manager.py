import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from x12_formats import DEFAULT_REFERENCE_DATA, ReferenceData

logger = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = "default"

class ReferenceDataManager:
    """
    Loads alternate reference tables (formats, payers, segment labels) from JSON files.
    Supports trading-partner specific overrides stored under
    <base_path>/partner-specific/<partner_id>/<name>.json.
    """

    def __init__(self, base_path: Optional[str] = None):
        self.base_path = Path(base_path) if base_path else None
        self._base_tables: Dict[str, ReferenceData] = {}
        self._partner_tables_cache: Dict[str, ReferenceData] = {}
        self._load_base_tables()

    def _read_file(self, path: Path) -> Optional[ReferenceData]:
        try:
            with open(path, 'r') as f:
                return ReferenceData.model_validate(json.load(f))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Failed to load reference tables {path.name}: {e}")
            return None

    def _load_base_tables(self):
        """Load base reference tables from the base directory."""
        if self.base_path is None:
            logger.debug("No reference path configured. Using built-in tables only.")
            return
        if not self.base_path.exists():
            logger.warning(f"Reference path does not exist: {self.base_path}")
            return

        logger.info(f"Loading reference tables from: {self.base_path}")
        for table_file in sorted(self.base_path.glob("*.json")):
            tables = self._read_file(table_file)
            if tables is not None:
                self._base_tables[table_file.stem] = tables
                logger.info(f"Loaded reference tables: {table_file.name}")

    def get_reference(self, name: str = DEFAULT_TABLE_NAME, partner_id: Optional[str] = None) -> ReferenceData:
        """
        Resolve reference tables for a trading partner.

        Checks partner-specific tables first, then base tables by name, and falls back
        to the built-in defaults when nothing matches.

        Args:
            name: Name of the table file without extension (e.g., "default")
            partner_id: Trading partner identifier

        Returns:
            ReferenceData
        """
        if name and partner_id and self.base_path is not None:
            cache_key = f"{partner_id}/{name}"
            if cache_key in self._partner_tables_cache:
                return self._partner_tables_cache[cache_key]

            partner_path = self.base_path / "partner-specific" / partner_id / f"{name}.json"
            if partner_path.exists():
                tables = self._read_file(partner_path)
                if tables is not None:
                    self._partner_tables_cache[cache_key] = tables
                    logger.info(f"Loaded partner-specific reference tables: {cache_key}")
                    return tables

        if name and name in self._base_tables:
            return self._base_tables[name]

        if name != DEFAULT_TABLE_NAME:
            logger.warning(f"Reference tables '{name}' not found. Using built-in tables.")
        return DEFAULT_REFERENCE_DATA

    def list_reference_tables(self) -> List[str]:
        return list(self._base_tables.keys())

    def reload(self):
        """Reload all reference tables from the filesystem."""
        self._base_tables.clear()
        self._partner_tables_cache.clear()
        self._load_base_tables()
