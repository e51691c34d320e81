from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Sequence

from analysis_engine.core.errors import ResultStoreError
from analysis_engine.domain.models import AnalysisResult

logger = logging.getLogger(__name__)


class ResultStore:
    """
    Reads and writes result documents (one JSON object per result, or a
    JSON array for a list of results).
    """

    @staticmethod
    def save_result(result: AnalysisResult, path: str | Path) -> Path:
        return ResultStore._write(Path(path), result.to_dict())

    @staticmethod
    def save_results(results: Sequence[AnalysisResult], path: str | Path) -> Path:
        return ResultStore._write(Path(path), [r.to_dict() for r in results])

    @staticmethod
    def load_results(path: str | Path) -> list[AnalysisResult]:
        data = ResultStore._read(Path(path))
        return ResultStore.from_documents(data if isinstance(data, list) else [data], source=str(path))

    @staticmethod
    def load_result(path: str | Path) -> AnalysisResult:
        data = ResultStore._read(Path(path))
        if isinstance(data, list):
            if len(data) != 1:
                raise ResultStoreError(f"Expected a single result in {path}, found {len(data)}")
            data = data[0]
        return ResultStore.from_documents([data], source=str(path))[0]

    @staticmethod
    def from_documents(docs: Sequence[Any], source: str = "request") -> list[AnalysisResult]:
        """Build results from decoded documents; any malformed one raises ``ResultStoreError``."""
        results = []
        for i, doc in enumerate(docs):
            if not isinstance(doc, dict):
                raise ResultStoreError(f"Invalid result document {source}: entry {i} is not an object")
            try:
                results.append(AnalysisResult.from_dict(doc))
            except (ValueError, TypeError, AttributeError, KeyError) as e:
                raise ResultStoreError(f"Invalid result document {source}: entry {i}: {e}") from e
        return results

    @staticmethod
    def _write(p: Path, payload: Any) -> Path:
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            raise ResultStoreError(f"Cannot open file for writing: {p}: {e}") from e
        logger.info("Saved results to %s", p)
        return p

    @staticmethod
    def _read(p: Path) -> Any:
        try:
            text = p.read_text(encoding="utf-8")
        except OSError as e:
            raise ResultStoreError(f"Cannot open file for reading: {p}: {e}") from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ResultStoreError(f"Invalid result document {p}: {e}") from e
        if not isinstance(data, (dict, list)):
            raise ResultStoreError(f"Invalid result document {p}: expected an object or array")
        return data
