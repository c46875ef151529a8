"""
Run reporting: phase banners, progress lines, the summary table and the
JSON report artifacts.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union
from core.config import settings
from schemas.migration import MigrationStats
import logging

logger = logging.getLogger(__name__)

BANNER_WIDTH = 60


class MigrationReporter:
    """Everything the operator sees about a run, routed through logging"""

    def __init__(self, artifacts_dir: Optional[Union[str, Path]] = None):
        self.artifacts_dir = Path(artifacts_dir or settings.ARTIFACTS_DIR)

    def phase(self, title: str) -> None:
        logger.info("=" * BANNER_WIDTH)
        logger.info(title.upper())
        logger.info("=" * BANNER_WIDTH)

    def progress(self, current: int, total: int, label: str = "records") -> None:
        percent = (current / total * 100) if total else 100.0
        logger.info(f"Progress: {current}/{total} {label} ({percent:.1f}%)")

    def summary(self, stats: MigrationStats) -> str:
        """Log the end-of-run table and return it as text"""
        rows = [
            ("Total rows", stats.total_rows),
            ("Valid", stats.valid_rows),
            ("Invalid", stats.invalid_rows),
            ("Imported", stats.imported),
            ("Duplicates", stats.duplicates),
            ("Failed", stats.failed),
            ("Images succeeded", stats.images_succeeded),
            ("Images failed", stats.images_failed),
            ("Records skipped", stats.records_skipped),
            ("Duration", f"{stats.duration_seconds:.2f}s"),
        ]
        label_width = max(len(label) for label, _ in rows)
        lines = ["MIGRATION SUMMARY", "-" * BANNER_WIDTH]
        lines.extend(f"{label:<{label_width}} : {value}" for label, value in rows)
        lines.append("-" * BANNER_WIDTH)

        for line in lines:
            logger.info(line)
        return "\n".join(lines)

    def write_report(self, filename: str, payload: Dict[str, Any]) -> Path:
        """Write a JSON report under the artifacts directory"""
        self.artifacts_dir.mkdir(parents=True, exist_ok=True)
        path = self.artifacts_dir / filename
        path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        logger.info(f"Report saved to {path}")
        return path
