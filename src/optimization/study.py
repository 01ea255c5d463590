"""Study orchestration: run trials concurrently, record outcomes, pick the best."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from threading import Lock, Timer
from typing import TYPE_CHECKING, Any, Callable, Iterable
from uuid import UUID, uuid4

import logging
import time

from hyperstudy.exceptions import AlreadyCompleteError, ObjectiveFailure, StudyError, TrialCancelledError
from hyperstudy.storage import InMemoryStorage, Storage, TrialRecord
from hyperstudy.storage.records import is_comparable_value

from .config import StudyConfig
from .samplers.base import BaseSampler
from .samplers.random_sampler import RandomSampler
from .trial import CancellationToken, Trial

if TYPE_CHECKING:  # pragma: no cover
    import pandas as pd

logger = logging.getLogger(__name__)

ObjectiveFunc = Callable[[Trial], Any]
Callback = Callable[["Study", TrialRecord], None]


class StudyDirection(str, Enum):
    MAXIMIZE = "maximize"
    MINIMIZE = "minimize"


@dataclass
class Study:
    """
    A set of trials over one objective, backed by a shared storage handle.

    The study owns no records itself. Every trial it runs reads and writes
    through ``storage``, and best-trial selection reduces whatever storage
    holds for ``study_id``.
    """

    storage: Storage = field(default_factory=InMemoryStorage)
    sampler: BaseSampler = field(default_factory=RandomSampler)
    direction: StudyDirection = StudyDirection.MAXIMIZE
    study_id: UUID = field(default_factory=uuid4)
    config: StudyConfig = field(default_factory=StudyConfig)
    callbacks: Iterable[Callback] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        self.direction = StudyDirection(self.direction)
        self._log_lock = Lock()
        self._log_path: Path | None = self.config.log_path
        self._failure_lock = Lock()
        self._total_failures = 0
        self._active_tokens: set[CancellationToken] = set()

    # Optimisation ------------------------------------------------------

    def optimize(
        self,
        objective: ObjectiveFunc,
        n_trials: int,
        *,
        max_workers: int | None = None,
        timeout: float | None = None,
    ) -> list[TrialRecord]:
        """
        Run ``objective`` for ``n_trials`` trials concurrently.

        Each trial's value is written back as soon as its objective returns. A
        trial whose objective raises, whose value cannot be written, or which is
        cancelled is recorded as FAIL; its siblings carry on. The call returns
        only once every trial has a terminal record in storage.

        Args:
            objective: Callable receiving a :class:`Trial` and returning its value.
            n_trials: Number of trials to run.
            max_workers: Thread pool size; defaults to ``config.max_workers``.
            timeout: Seconds after which remaining trials are cancelled; defaults
                to ``config.max_run_time_seconds``.

        Returns:
            The finished records of this run, ordered by trial id.
        """
        if n_trials < 0:
            raise ValueError("n_trials must be non-negative")
        if n_trials == 0:
            return []

        worker_count = max_workers or self.config.max_workers or min(32, n_trials)
        time_limit = timeout if timeout is not None else self.config.max_run_time_seconds

        with self._failure_lock:
            self._total_failures = 0
        token = CancellationToken()
        self._active_tokens.add(token)
        timer: Timer | None = None
        if time_limit is not None:
            timer = Timer(time_limit, token.cancel, kwargs={"reason": f"timeout after {time_limit}s"})
            timer.daemon = True
            timer.start()

        run_start = time.perf_counter()
        self._log(f"Starting study {self.study_id}: {n_trials} trials with max_workers={worker_count}")

        records: list[TrialRecord] = []
        try:
            with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="trial") as executor:
                futures = [executor.submit(self._run_trial, objective, token) for _ in range(n_trials)]
                for future in as_completed(futures):
                    record = future.result()
                    if record is None:
                        continue
                    records.append(record)
                    for callback in self.callbacks:
                        callback(self, record)
        finally:
            if timer is not None:
                timer.cancel()
            self._active_tokens.discard(token)

        duration = time.perf_counter() - run_start
        status = "Stopped" if token.cancelled else "Completed"
        self._log(f"{status} study {self.study_id} in {duration:.2f} seconds")
        return sorted(records, key=lambda item: item.trial_id)

    def stop(self) -> None:
        """Cancel every running optimisation of this study; pending trials are recorded as failed."""
        for token in list(self._active_tokens):
            token.cancel("stopped")

    # Best trial --------------------------------------------------------

    def get_best_trial(self) -> TrialRecord | None:
        """
        Return the best COMPLETE trial for the study direction, or None.

        Only complete trials with an orderable value are candidates. A candidate
        replaces the incumbent only when strictly better, so ties go to the
        lowest trial id.
        """
        best: TrialRecord | None = None
        for record in self.storage.get_trials(self.study_id):
            if not record.is_complete or not is_comparable_value(record.value):
                continue
            if best is None or self._is_better(record.value, best.value):
                best = record
        return best

    @property
    def trials(self) -> list[TrialRecord]:
        return self.storage.get_trials(self.study_id)

    @property
    def best_trial(self) -> TrialRecord | None:
        return self.get_best_trial()

    @property
    def best_value(self) -> Any:
        return self._require_best().value

    @property
    def best_params(self) -> dict[str, Any]:
        return self._require_best().param_values()

    def trials_dataframe(self) -> "pd.DataFrame":
        from .reporting import StudyReporter

        return StudyReporter(self).to_table()

    # Execution helpers -------------------------------------------------

    def _run_trial(self, objective: ObjectiveFunc, token: CancellationToken) -> TrialRecord | None:
        try:
            trial_id = self.storage.create_new_trial(self.study_id).trial_id
        except StudyError as exc:
            self._log(f"Could not create a trial: {type(exc).__name__}: {exc}", logging.ERROR)
            return None

        trial = Trial(self.study_id, trial_id, self.storage, self.sampler, token)
        try:
            token.raise_if_cancelled()
            value = objective(trial)
            record = self.storage.set_trial_value(self.study_id, trial_id, value)
        except Exception as exc:
            return self._record_failure(trial_id, exc, token)
        self._record_success(record)
        return record

    def _record_success(self, record: TrialRecord) -> None:
        self._log(f"[trial {record.trial_id}] complete value={record.value!r} params={record.param_values()}")

    def _record_failure(self, trial_id: int, exc: Exception, token: CancellationToken) -> TrialRecord:
        error = f"{type(exc).__name__}: {exc}"
        if isinstance(exc, TrialCancelledError):
            self._log(f"[trial {trial_id}] cancelled: {exc}", logging.WARNING)
        elif isinstance(exc, StudyError):
            self._log(f"[trial {trial_id}] error: {error}", logging.ERROR)
        else:
            self._log(f"[trial {trial_id}] error: {ObjectiveFailure(trial_id, exc)}", logging.ERROR)

        try:
            record = self.storage.set_trial_failed(self.study_id, trial_id, error)
        except AlreadyCompleteError:
            # The objective finished its own trial; keep what storage holds.
            self._log(f"[trial {trial_id}] already finished; failure not recorded", logging.WARNING)
            return self._stored_or_failed(trial_id, error)
        except StudyError as store_exc:
            self._log(
                f"[trial {trial_id}] failure not recorded: {type(store_exc).__name__}: {store_exc}",
                logging.ERROR,
            )
            record = TrialRecord(study_id=self.study_id, trial_id=trial_id).fail(error)

        if not isinstance(exc, TrialCancelledError):
            with self._failure_lock:
                self._total_failures += 1
                failures = self._total_failures
            max_failures = self.config.max_failures
            if max_failures is not None and failures >= max_failures:
                token.cancel(f"max_failures={max_failures} reached")
        return record

    def _stored_or_failed(self, trial_id: int, error: str) -> TrialRecord:
        try:
            record = self.storage.get_trial(self.study_id, trial_id)
        except StudyError as exc:
            self._log(f"[trial {trial_id}] unreadable: {type(exc).__name__}: {exc}", logging.ERROR)
            record = None
        if record is None:
            return TrialRecord(study_id=self.study_id, trial_id=trial_id).fail(error)
        return record

    def _is_better(self, candidate: Any, incumbent: Any) -> bool:
        try:
            if self.direction is StudyDirection.MAXIMIZE:
                return bool(candidate > incumbent)
            return bool(candidate < incumbent)
        except TypeError:
            return False

    def _require_best(self) -> TrialRecord:
        best = self.get_best_trial()
        if best is None:
            raise ValueError(f"Study {self.study_id} has no complete trials")
        return best

    def _log(self, message: str, level: int = logging.INFO) -> None:
        logger.log(level, message)
        if not self._log_path:
            return
        timestamp = datetime.now(UTC).isoformat()
        line = f"{timestamp} {logging.getLevelName(level)} {message}\n"
        with self._log_lock:
            self._log_path.parent.mkdir(parents=True, exist_ok=True)
            with self._log_path.open("a", encoding="utf-8") as handle:
                handle.write(line)


def create_study(
    storage: Storage | None = None,
    sampler: BaseSampler | None = None,
    direction: str | StudyDirection | None = None,
    *,
    config: StudyConfig | None = None,
    callbacks: Iterable[Callback] = (),
) -> Study:
    """
    Build a study with its own storage and sampler unless shared ones are supplied.

    Storage and sampler defaults take ``lock_stripes`` and ``seed`` from
    ``config``; ``direction`` overrides ``config.direction`` when given.
    """
    config = config or StudyConfig()
    return Study(
        storage=storage if storage is not None else InMemoryStorage(lock_stripes=config.lock_stripes),
        sampler=sampler if sampler is not None else RandomSampler(seed=config.seed),
        direction=StudyDirection(direction or config.direction),
        config=config,
        callbacks=tuple(callbacks),
    )
