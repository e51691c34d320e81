from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any

from fastapi import APIRouter, HTTPException

from analysis_engine.core import containers
from analysis_engine.core.errors import InvalidArgumentError, ResultStoreError
from analysis_engine.domain.models import AnalysisResult, Progress
from analysis_engine.domain.schemas import AnalyseRequest, AnalyseResponse, CompareRequest, JobResponse, ResultsBody
from analysis_engine.services.result_store import ResultStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["analysis"])


@dataclass
class _Job:
    future: Future
    progress: dict[str, dict[str, Any]] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)


# Finished jobs are dropped once their outcome has been returned by a poll
_jobs: dict[str, _Job] = {}
_jobs_lock = threading.Lock()


def _results_from(docs: list[dict[str, Any]]) -> list[AnalysisResult]:
    try:
        return ResultStore.from_documents(docs)
    except ResultStoreError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ── Endpoints ─────────────────────────────────────────────────────
@router.post(
    "/analyse",
    response_model=AnalyseResponse,
    summary="Run tools and wait",
    response_description="Per-tool results, the merged report and statistics",
)
def analyse(req: AnalyseRequest) -> dict[str, Any]:
    """Run the selected tools one after another and return everything.

    **Steps performed:**
    1. Reject unknown tool names before anything runs
    2. Execute each available tool (unavailable ones are skipped)
    3. Merge and deduplicate issues across tools
    4. Optionally persist the per-tool results to `save_to`
    """
    orchestrator = containers.get_orchestrator()
    try:
        results = orchestrator.run_batch(req.tools, req.request.to_domain())
    except InvalidArgumentError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if req.save_to:
        try:
            orchestrator.save_results(results, req.save_to)
        except ResultStoreError as e:
            raise HTTPException(status_code=500, detail=str(e))

    return {
        "results": [r.to_dict() for r in results],
        "aggregated": orchestrator.aggregate(results).to_dict(),
        "statistics": orchestrator.statistics(results).to_dict(),
    }


@router.post(
    "/analyse/jobs",
    response_model=JobResponse,
    summary="Start a background run",
    response_description="Job handle to poll",
)
def start_job(req: AnalyseRequest) -> dict[str, Any]:
    orchestrator = containers.get_orchestrator()
    job_id = uuid.uuid4().hex
    progress: dict[str, dict[str, Any]] = {}
    lock = threading.Lock()

    # Called from worker threads
    def on_progress(tool: str, p: Progress) -> None:
        with lock:
            progress[tool] = {
                "total_files": p.total_files,
                "processed_files": p.processed_files,
                "current_file": p.current_file,
                "status_message": p.status_message,
            }

    def on_complete(results: list[AnalysisResult]) -> None:
        logger.info("Job finished with %d results", len(results), extra={"job_id": job_id})
        if req.save_to and results:
            try:
                orchestrator.save_results(results, req.save_to)
            except ResultStoreError:
                logger.exception("Could not save job results", extra={"job_id": job_id})

    future = orchestrator.run_batch_async(req.tools, req.request.to_domain(), on_progress, on_complete)
    with _jobs_lock:
        _jobs[job_id] = _Job(future=future, progress=progress, lock=lock)
    return {"job_id": job_id, "status": "running"}


@router.get(
    "/analyse/jobs/{job_id}",
    response_model=JobResponse,
    summary="Poll a background run",
)
def get_job(job_id: str) -> dict[str, Any]:
    with _jobs_lock:
        job = _jobs.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")

    with job.lock:
        progress = dict(job.progress)
    out: dict[str, Any] = {"job_id": job_id, "status": "running", "progress": progress}

    if job.future.done():
        error = job.future.exception()
        if error is not None:
            out.update(status="failed", error=str(error))
        else:
            out.update(status="done", results=[r.to_dict() for r in job.future.result()])
        with _jobs_lock:
            _jobs.pop(job_id, None)
    return out


@router.post(
    "/analyse/cancel",
    summary="Cancel running analyses",
    response_description="Cancellation is cooperative; running processes may finish",
)
def cancel() -> dict[str, bool]:
    return {"cancelled": containers.get_orchestrator().cancel()}


@router.post(
    "/aggregate",
    summary="Merge results",
    response_description="One deduplicated result",
)
def aggregate(body: ResultsBody) -> dict[str, Any]:
    return containers.get_orchestrator().aggregate(_results_from(body.results)).to_dict()


@router.post(
    "/statistics",
    summary="Summarise results",
)
def statistics(body: ResultsBody, top_n: int = 10) -> dict[str, Any]:
    return containers.get_orchestrator().statistics(_results_from(body.results), top_n).to_dict()


@router.post(
    "/compare",
    summary="Compare two runs",
    response_description="New, resolved and persistent issues",
)
def compare(req: CompareRequest) -> dict[str, Any]:
    orchestrator = containers.get_orchestrator()
    return orchestrator.compare(_results_from(req.baseline), _results_from(req.current)).to_dict()
