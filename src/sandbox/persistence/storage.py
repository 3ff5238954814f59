"""Keeper simulation result storage."""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from config.settings import Settings, get_settings
from src.sandbox.models.simulation import SimulationResult

logger = logging.getLogger(__name__)


class DateTimeEncoder(json.JSONEncoder):
    """JSON encoder that handles datetime types."""

    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


class RunStorage:
    """
    Persistent storage for keeper simulation results.

    Uses JSON files for simplicity and human-readability.
    Directory structure:
        storage_dir/
            runs/
                {run_name}/
                    {timestamp}.json
    """

    def __init__(self, storage_dir: Optional[Path] = None, settings: Optional[Settings] = None):
        """
        Initialize storage.

        Args:
            storage_dir: Base directory for storage (default: settings.storage_dir)
            settings: Settings override
        """
        if storage_dir is None:
            storage_dir = (settings or get_settings()).ensure_storage_dir()

        self.storage_dir = Path(storage_dir)
        self.runs_dir = self.storage_dir / "runs"
        self.runs_dir.mkdir(parents=True, exist_ok=True)

    def save_result(self, result: SimulationResult, result_id: Optional[str] = None) -> str:
        """
        Save a simulation result.

        Args:
            result: Simulation result to save
            result_id: Optional custom result ID

        Returns:
            Result ID
        """
        if result_id is None:
            result_id = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")

        run_dir = self.runs_dir / self._run_key(result.config.name)
        run_dir.mkdir(parents=True, exist_ok=True)

        data = result.to_dict()
        data["_id"] = result_id

        with open(run_dir / f"{result_id}.json", "w") as f:
            json.dump(data, f, cls=DateTimeEncoder, indent=2)

        logger.info(f"Saved result: {result.config.name}/{result_id}")
        return result_id

    def load_result(self, run_name: str, result_id: str) -> Optional[SimulationResult]:
        """
        Load a simulation result.

        Returns:
            SimulationResult or None if not found
        """
        file_path = self.runs_dir / self._run_key(run_name) / f"{result_id}.json"

        if not file_path.exists():
            logger.warning(f"Result not found: {run_name}/{result_id}")
            return None

        with open(file_path, "r") as f:
            data = json.load(f)

        data.pop("_id", None)
        return SimulationResult.from_dict(data)

    def list_results(self, run_name: str) -> List[Dict[str, Any]]:
        """
        List all results for a run name, newest first.

        Returns:
            List of result summaries
        """
        run_dir = self.runs_dir / self._run_key(run_name)

        if not run_dir.exists():
            return []

        results = []
        for file_path in run_dir.glob("*.json"):
            with open(file_path, "r") as f:
                data = json.load(f)

            metrics = data.get("metrics") or {}
            results.append({
                "id": data.get("_id", file_path.stem),
                "run_name": run_name,
                "start_time": data.get("start_time"),
                "created_at": data.get("created_at"),
                "success": data.get("success"),
                "total_profit": metrics.get("total_profit"),
                "final_donation_balance": metrics.get("final_donation_balance"),
            })

        results.sort(key=lambda x: x.get("created_at") or "", reverse=True)
        return results

    def delete_result(self, run_name: str, result_id: str) -> bool:
        """
        Delete a simulation result.

        Returns:
            True if deleted, False if not found
        """
        file_path = self.runs_dir / self._run_key(run_name) / f"{result_id}.json"

        if file_path.exists():
            file_path.unlink()
            logger.info(f"Deleted result: {run_name}/{result_id}")
            return True

        return False

    def _run_key(self, run_name: str) -> str:
        """Filesystem-safe directory name for a run."""
        safe_name = re.sub(r"[^a-z0-9]+", "_", run_name.lower()).strip("_")
        return safe_name or "run"
