"""
Job Registry.

Holds JobDefinitions with their handlers and owns the persisted form of
their mutable fields. Timers and the active set live in SchedulerService;
the registry only knows what is registered and what was last persisted.
"""

import logging

from .entities import JobDefinition
from .errors import InvalidOperationError, JobNotFoundError, PersistenceError
from .executor import JobHandler
from .persistence import ConfigStore


logger = logging.getLogger(__name__)


# Namespace under which all job configs are saved as one blob
CONFIG_NAMESPACE = "scheduler_configs"


class JobRegistry:
    """
    Registered jobs, keyed by job_id, in registration order.

    Persistence contract:
    - persist() writes the mutable fields of every job as one blob
    - load() merges persisted fields onto the registered definitions;
      unknown ids in the blob are ignored, static fields never change
    """

    def __init__(self, config_store: ConfigStore, namespace: str = CONFIG_NAMESPACE):
        self.config_store = config_store
        self.namespace = namespace
        self._jobs: dict[str, tuple[JobDefinition, JobHandler]] = {}

    def register(self, definition: JobDefinition, handler: JobHandler) -> None:
        """Register (or replace) a job under its job_id."""
        if not isinstance(handler, JobHandler):
            raise InvalidOperationError(
                f"Handler for {definition.job_id} must be a JobHandler, "
                f"got {type(handler).__name__}"
            )
        replaced = definition.job_id in self._jobs
        self._jobs[definition.job_id] = (definition, handler)
        logger.info(
            f"{'Re-registered' if replaced else 'Registered'} job "
            f"{definition.job_id} ({definition.name}, cron='{definition.cron_expression}')"
        )

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)

    def get(self, job_id: str) -> JobDefinition:
        """
        Raises:
            JobNotFoundError: If job_id is not registered
        """
        try:
            return self._jobs[job_id][0]
        except KeyError:
            raise JobNotFoundError(job_id) from None

    def get_handler(self, job_id: str) -> JobHandler:
        try:
            return self._jobs[job_id][1]
        except KeyError:
            raise JobNotFoundError(job_id) from None

    def definitions(self) -> list[JobDefinition]:
        return [definition for definition, _ in self._jobs.values()]

    def job_ids(self) -> list[str]:
        return list(self._jobs)

    # =========================================================================
    # Persistence
    # =========================================================================

    def load(self) -> int:
        """
        Merge persisted mutable fields onto registered jobs.

        Read failures are logged and leave the defaults in place.

        Returns:
            Number of jobs that received persisted state
        """
        try:
            saved = self.config_store.load(self.namespace)
        except Exception as e:
            logger.warning(f"Failed to load scheduler configurations: {e}")
            return 0

        if not saved:
            return 0

        applied = 0
        for state in saved:
            job_id = state.get("job_id") if isinstance(state, dict) else None
            if job_id not in self._jobs:
                continue
            try:
                self._jobs[job_id][0].apply_state(state)
                applied += 1
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring corrupt saved state for {job_id}: {e}")

        logger.info(f"Loaded saved configuration for {applied} job(s)")
        return applied

    def persist(self) -> bool:
        """
        Save mutable fields of all jobs.

        Returns:
            True on success; failures are logged as warnings only
        """
        try:
            self.config_store.save(
                self.namespace,
                [definition.to_state() for definition in self.definitions()],
            )
            return True
        except PersistenceError as e:
            logger.warning(f"Failed to save scheduler configuration: {e}")
        except Exception as e:
            logger.warning(f"Unexpected error saving scheduler configuration: {e}")
        return False
