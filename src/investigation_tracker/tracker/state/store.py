"""The shared state directory: queue, ledger and worker liveness marker."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from investigation_tracker.tracker.state.documents import JsonDocument
from investigation_tracker.tracker.state.ledger import InvestigationLedger
from investigation_tracker.tracker.state.queue import InvestigationQueue

logger = logging.getLogger(__name__)

QUEUE_FILENAME = "queue.json"
LEDGER_FILENAME = "investigated.json"
WORKER_MARKER_FILENAME = "worker.json"


@dataclass(frozen=True, slots=True)
class StateStore:
    state_dir: Path
    queue: InvestigationQueue
    ledger: InvestigationLedger
    worker_marker: JsonDocument

    # Whether opening the store rewrote a legacy ledger.
    migrated: bool = False

    @classmethod
    def open(cls, state_dir: Path) -> StateStore:
        """Open the state directory and migrate the ledger if needed."""

        state_dir.mkdir(parents=True, exist_ok=True)
        ledger = InvestigationLedger(JsonDocument(state_dir / LEDGER_FILENAME))
        queue = InvestigationQueue(JsonDocument(state_dir / QUEUE_FILENAME), ledger)
        worker_marker = JsonDocument(state_dir / WORKER_MARKER_FILENAME)

        migrated = ledger.migrate()

        logger.debug("State store opened", extra={"state_dir": str(state_dir)})
        return cls(
            state_dir=state_dir,
            queue=queue,
            ledger=ledger,
            worker_marker=worker_marker,
            migrated=migrated,
        )
