"""Background jobs for post-approval processing."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from time import perf_counter

from sqlalchemy import or_, select

from schemalens.config import get_settings
from schemalens.db.session import SessionLocal
from schemalens.llm.client import LLMClientError, build_default_llm_client
from schemalens.models.ontology_entity import OntologyEntity
from schemalens.services.entity_enrichment import enrich_entities

logger = logging.getLogger(__name__)

ProjectTask = Callable[[str], None]


class ProjectTaskRunner:
    """Runs project-keyed tasks on a shared pool, independent of any request.

    At most one task per project runs at a time. A task submitted while one is
    running for the same project is queued and runs once the current one ends;
    further submissions in that window replace the queued task.
    """

    def __init__(self, max_workers: int) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="schemalens-bg")
        self._lock = threading.Lock()
        self._running: set[str] = set()
        self._queued: dict[str, ProjectTask] = {}

    def submit(self, project_id: str, task: ProjectTask) -> bool:
        """Schedule ``task(project_id)``; returns False when it was queued behind a running task."""

        with self._lock:
            if project_id in self._running:
                self._queued[project_id] = task
                return False
            self._running.add(project_id)
        self._executor.submit(self._run, project_id, task)
        return True

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _run(self, project_id: str, task: ProjectTask) -> None:
        next_task: ProjectTask | None = task
        while next_task is not None:
            try:
                next_task(project_id)
            except Exception:  # noqa: BLE001
                logger.exception("background.task_failed project_id=%s", project_id)
            with self._lock:
                next_task = self._queued.pop(project_id, None)
                if next_task is None:
                    self._running.discard(project_id)


@lru_cache
def get_task_runner() -> ProjectTaskRunner:
    """Return the process-wide runner."""

    return ProjectTaskRunner(max_workers=get_settings().background_max_workers)


def shutdown_task_runner() -> None:
    if get_task_runner.cache_info().currsize:
        get_task_runner().shutdown(wait=True)
        get_task_runner.cache_clear()


def run_post_approval_processing(project_id: str) -> None:
    """Re-enrich entities left stale or undescribed after approved schema changes."""

    total_started = perf_counter()
    db = SessionLocal()
    try:
        ontology_ids = list(
            db.scalars(
                select(OntologyEntity.ontology_id)
                .where(
                    OntologyEntity.project_id == project_id,
                    OntologyEntity.removed.is_(False),
                    or_(OntologyEntity.description == "", OntologyEntity.is_stale.is_(True)),
                )
                .distinct()
            )
        )
        if not ontology_ids:
            return
        try:
            llm_client = build_default_llm_client()
        except LLMClientError as exc:
            logger.info("background.post_approval_skipped project_id=%s reason=%s", project_id, exc)
            return

        enriched = 0
        for ontology_id in ontology_ids:
            result = enrich_entities(db, project_id=project_id, ontology_id=ontology_id, llm_client=llm_client)
            enriched += result.entities_enriched
        logger.info(
            "background.post_approval_timing project_id=%s ontologies=%d entities_enriched=%d total_ms=%.2f",
            project_id,
            len(ontology_ids),
            enriched,
            (perf_counter() - total_started) * 1000.0,
        )
    except Exception:
        logger.exception(
            "background.post_approval_failed project_id=%s elapsed_ms=%.2f",
            project_id,
            (perf_counter() - total_started) * 1000.0,
        )
        raise
    finally:
        db.close()


def schedule_post_approval_processing(project_id: str) -> bool:
    """Queue re-enrichment for a project after review decisions were applied."""

    return get_task_runner().submit(project_id, run_post_approval_processing)
