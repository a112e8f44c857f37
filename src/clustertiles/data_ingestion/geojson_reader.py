"""
GeoJSON Point Reader

Loads the source feature collection for clustering, either by parsing the
whole file or by streaming it line by line. The line reader is best-effort:
it assumes one feature per line inside the ``features`` array, tolerates a
trailing comma on each line and skips lines that do not decode as UTF-8 or
do not parse, reporting
every skip back to the caller.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import aiofiles
import structlog


@dataclass
class LineResult:
    """Outcome of parsing a single line of a streamed collection."""
    line_number: int
    feature: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None

    @property
    def parsed(self) -> bool:
        return self.feature is not None

    @property
    def skipped(self) -> bool:
        return self.feature is None


@dataclass
class IngestionReport:
    """Features loaded from a source file plus line accounting."""
    source: str
    features: List[Dict[str, Any]] = field(default_factory=list)
    lines_read: int = 0
    lines_skipped: int = 0
    by_line: bool = False

    def record(self, result: LineResult) -> None:
        self.lines_read += 1
        if result.parsed:
            self.features.append(result.feature)
        else:
            self.lines_skipped += 1


class GeoJSONReader:
    """Reads a GeoJSON FeatureCollection of points from disk."""

    FEATURES_MARKER = "features"

    def __init__(self):
        self.logger = structlog.get_logger(reader_type="GeoJSONReader")

    async def read(self, path: Union[str, Path], by_line: bool = False) -> IngestionReport:
        """
        Read a feature collection.

        Args:
            path: GeoJSON file path
            by_line: Stream one feature per line instead of parsing the whole file

        Returns:
            Ingestion report holding the features

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If whole-file parsing fails or yields no feature list
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Input file not found: {path}")

        if by_line:
            report = await self.read_lines(path)
        else:
            report = await self.read_file(path)

        self.logger.info(
            "Input features loaded",
            source=str(path),
            features=len(report.features),
            lines_skipped=report.lines_skipped,
            by_line=by_line
        )
        return report

    async def read_file(self, path: Union[str, Path]) -> IngestionReport:
        """Parse the whole file as one JSON document."""
        async with aiofiles.open(path, 'r', encoding='utf-8') as f:
            content = await f.read()

        try:
            collection = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid GeoJSON in {path}: {e}") from e

        features = collection.get('features') if isinstance(collection, dict) else None
        if not isinstance(features, list):
            raise ValueError(f"No 'features' array found in {path}")

        return IngestionReport(source=str(path), features=features)

    async def read_lines(self, path: Union[str, Path]) -> IngestionReport:
        """Stream features one per line, skipping lines that fail to parse."""
        report = IngestionReport(source=str(path), by_line=True)
        found_features = False
        line_number = 0

        async with aiofiles.open(path, 'rb') as f:
            async for raw_line in f:
                line_number += 1
                line = raw_line.rstrip(b'\r\n')

                if found_features:
                    result = self.parse_line(line, line_number)
                    if result.skipped:
                        self.logger.debug(
                            "Skipping input line",
                            line_number=line_number,
                            reason=result.reason
                        )
                    report.record(result)
                elif self.FEATURES_MARKER.encode('utf-8') in line:
                    found_features = True

        return report

    @staticmethod
    def parse_line(line: Union[str, bytes], line_number: int = 0) -> LineResult:
        """Parse one feature line, given as text or raw bytes; never raises."""
        if isinstance(line, bytes):
            try:
                line = line.decode('utf-8')
            except UnicodeDecodeError as e:
                return LineResult(line_number=line_number, reason=f"invalid UTF-8: {e}")

        if line.endswith(','):
            line = line[:-1]

        try:
            value = json.loads(line)
        except ValueError as e:
            return LineResult(line_number=line_number, reason=f"invalid JSON: {e}")

        if not isinstance(value, dict):
            return LineResult(line_number=line_number, reason="not a JSON object")

        return LineResult(line_number=line_number, feature=value)
