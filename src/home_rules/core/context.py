"""
EngineContext: the explicitly constructed home of all shared engine state.

There are no module-level singletons. One context holds the three
registries, the configuration, the device gateway, the dispatch executor, the
conflict arbiter, the description lookup and the dispatch history, and is
handed to every component that needs them.
"""

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

from home_rules.actions.arbitration import ConflictArbiter
from home_rules.actions.gateway import DeviceGateway
from home_rules.actions.models import ActionResult
from home_rules.actions.registry import ActionRegistry
from home_rules.config import EngineConfig
from home_rules.core.dispatch import DispatchExecutor, ThreadedDispatchExecutor
from home_rules.events.registry import EventRegistry
from home_rules.rules.descriptions import AnomalyDescriptionLookup, InMemoryDescriptionLookup
from home_rules.rules.registry import RuleRegistry

logger = logging.getLogger(__name__)


class EngineContext:
    """Shared state and collaborators of one engine instance."""

    def __init__(
        self,
        gateway: DeviceGateway,
        config: Optional[EngineConfig] = None,
        executor: Optional[DispatchExecutor] = None,
        descriptions: Optional[AnomalyDescriptionLookup] = None,
    ) -> None:
        """
        Initialize the context.

        Args:
            gateway: Device gateway used by every Action
            config: Engine configuration (defaults when omitted)
            executor: Dispatch executor (thread pool when omitted)
            descriptions: Anomaly description lookup (empty in-memory when omitted)
        """
        self.config = config or EngineConfig()
        self.gateway = gateway
        self.executor = executor or ThreadedDispatchExecutor(self.config.max_dispatch_workers)
        self.descriptions = descriptions or InMemoryDescriptionLookup()
        self.arbiter = ConflictArbiter(
            conflict_cooldown_seconds=self.config.conflict_cooldown_seconds,
            repeat_cooldown_seconds=self.config.repeat_cooldown_seconds,
        )

        self.events = EventRegistry()
        self.actions = ActionRegistry(self)
        self.rules = RuleRegistry()

        # Dispatch history (ring buffer), appended from executor threads
        self._history: Deque[ActionResult] = deque(maxlen=self.config.history_size)
        self._history_lock = threading.Lock()

    def now(self) -> datetime:
        """Current time from the gateway clock."""
        return self.gateway.get_current_time()

    # =========================================================================
    # History
    # =========================================================================

    def record(self, result: ActionResult) -> None:
        """Append a dispatch result to the history."""
        with self._history_lock:
            self._history.append(result)

    def get_history(
        self,
        rule_id: Optional[str] = None,
        action_key: Optional[str] = None,
        limit: int = 20,
    ) -> List[ActionResult]:
        """
        Get dispatch history.

        Args:
            rule_id: Filter by rule (optional)
            action_key: Filter by action (optional)
            limit: Maximum entries to return

        Returns:
            List of ActionResult records (newest first)
        """
        with self._history_lock:
            entries = list(self._history)

        result = []
        for entry in reversed(entries):
            if rule_id and entry.rule_id != rule_id:
                continue
            if action_key and entry.action_key != action_key:
                continue
            result.append(entry)
            if len(result) >= limit:
                break
        return result

    def clear_history(self) -> None:
        with self._history_lock:
            self._history.clear()

    def export_history(self) -> List[Dict[str, Any]]:
        with self._history_lock:
            return [entry.to_dict() for entry in self._history]

    def restore_history(self, entries: List[Dict[str, Any]]) -> None:
        with self._history_lock:
            self._history.clear()
            for entry in entries:
                self._history.append(ActionResult.from_dict(entry))

    def shutdown(self, wait: bool = True) -> None:
        """Stop the dispatch executor."""
        self.executor.shutdown(wait=wait)
        logger.debug("Engine context shut down")
