"""Reporting utilities for studies."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from statistics import mean
from typing import TYPE_CHECKING, Any, Dict

import json

import pandas as pd

from hyperstudy.storage import TrialRecord, TrialState
from hyperstudy.storage.records import is_comparable_value

if TYPE_CHECKING:  # pragma: no cover
    from .study import Study

_BASE_COLUMNS = ("trial_id", "state", "value", "error")


@dataclass
class StudyReporter:
    """Produce tabular and aggregated views of a study's trials."""

    study: "Study"

    def to_table(self) -> pd.DataFrame:
        """Return one row per trial with a ``param_<name>`` column per sampled parameter."""
        rows: list[dict[str, Any]] = []
        for record in self.study.trials:
            row = {
                "trial_id": record.trial_id,
                "state": record.state.value,
                "value": record.value,
                "error": record.error,
            }
            row.update({f"param_{name}": value for name, value in record.param_values().items()})
            rows.append(row)

        if not rows:
            return pd.DataFrame(columns=list(_BASE_COLUMNS))
        table = pd.DataFrame(rows)
        param_columns = sorted(column for column in table.columns if column not in _BASE_COLUMNS)
        return table[list(_BASE_COLUMNS) + param_columns]

    def summary(self, *, top_n: int = 5) -> Dict[str, Any]:
        """Return aggregated statistics: state counts, best trial, top-N, value distribution."""
        trials = self.study.trials
        counts = Counter(record.state.value for record in trials)
        complete = [
            record for record in trials if record.is_complete and is_comparable_value(record.value)
        ]

        best = self.study.get_best_trial()
        ranked = self._ranked(complete)

        distribution: dict[str, float] = {}
        numeric = [record.value for record in complete if isinstance(record.value, (int, float))]
        if numeric:
            distribution = {"min": min(numeric), "max": max(numeric), "mean": mean(numeric)}

        return {
            "study_id": str(self.study.study_id),
            "direction": self.study.direction.value,
            "counts": {state.value: counts.get(state.value, 0) for state in TrialState},
            "best": None if best is None else self._result_payload(best),
            "top_n": [self._result_payload(record) for record in ranked[:top_n]],
            "values": distribution,
        }

    def export_csv(self, destination: str | Path) -> Path:
        destination_path = Path(destination)
        destination_path.parent.mkdir(parents=True, exist_ok=True)
        self.to_table().to_csv(destination_path, index=False)
        return destination_path

    def export_json(self, destination: str | Path, *, top_n: int = 5) -> Path:
        destination_path = Path(destination)
        destination_path.parent.mkdir(parents=True, exist_ok=True)
        payload = self.summary(top_n=top_n)
        payload["trials"] = [record.to_dict() for record in self.study.trials]
        destination_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return destination_path

    def _ranked(self, complete: list[TrialRecord]) -> list[TrialRecord]:
        # Stable sort keeps lower trial ids first among equal values.
        reverse = self.study.direction.value == "maximize"
        try:
            return sorted(complete, key=lambda record: record.value, reverse=reverse)
        except TypeError:
            return list(complete)

    @staticmethod
    def _result_payload(record: TrialRecord) -> Dict[str, Any]:
        return {
            "trial_id": record.trial_id,
            "value": record.value,
            "params": record.param_values(),
            "finished_at": record.finished_at,
        }
