"""
Host Monitor - Export Sink

Writes sample sequences and system snapshots to JSON files.
"""

import json
import os
import platform
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

import structlog

from telemetry.errors import ExportError
from telemetry.models import Sample

logger = structlog.get_logger(__name__)

KINDS = ("samples", "snapshot")


class ExportSink:
    """Persists monitoring data as JSON documents."""

    def __init__(self, export_dir: Union[str, Path] = "exports", hostname: Optional[str] = None):
        self.export_dir = Path(export_dir)
        self.hostname = hostname or platform.node() or "localhost"

    def build_path(self, kind: str, now: Optional[datetime] = None) -> Path:
        """Default destination: <export_dir>/<kind>_<hostname>_<YYYYmmdd_HHMMSS>.json"""
        now = now or datetime.now()
        return self.export_dir / f"{kind}_{self.hostname}_{now.strftime('%Y%m%d_%H%M%S')}.json"

    def export(
        self,
        data: Union[Sequence[Sample], Dict[str, Any]],
        destination: Optional[Union[str, Path]] = None,
        kind: str = "samples",
    ) -> Path:
        """Write data to destination and return the final path."""
        if kind not in KINDS:
            raise ExportError(f"Unknown export kind: {kind}")

        path = self._resolve(destination, kind)
        document = self._document(data, kind)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write to a temp file first so readers never see a partial document
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, indent=2, default=str)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.remove(tmp_name)
                raise
        except OSError as e:
            logger.error("Export failed", path=str(path), error=str(e))
            raise ExportError(f"Could not write {path}: {e}") from e

        logger.info("Data exported", path=str(path), kind=kind)
        return path

    def _resolve(self, destination: Optional[Union[str, Path]], kind: str) -> Path:
        if destination is None:
            return self.build_path(kind)

        path = Path(destination)
        if path.is_dir() or str(destination).endswith(("/", os.sep)):
            return path / self.build_path(kind).name
        if path.suffix.lower() != ".json":
            path = path.with_name(path.name + ".json")
        return path

    def _document(self, data: Union[Sequence[Sample], Dict[str, Any]], kind: str) -> Dict[str, Any]:
        document: Dict[str, Any] = {
            "kind": kind,
            "hostname": self.hostname,
            "exported_at": datetime.now(timezone.utc).isoformat(),
        }
        if kind == "snapshot":
            if not isinstance(data, dict):
                raise ExportError("Snapshot export expects a mapping")
            document["snapshot"] = data
        else:
            samples = list(data)
            if not all(isinstance(s, Sample) for s in samples):
                raise ExportError("Samples export expects a sequence of Sample")
            document["count"] = len(samples)
            document["samples"] = [s.to_dict() for s in samples]
        return document
