"""Registry of strategies and periodic enforcement of them."""

from __future__ import annotations

import logging
import threading
from typing import Any

from tasched.strategy import Strategy

logger = logging.getLogger(__name__)


def _is_enforceable(strategy: Any) -> bool:
    return callable(getattr(strategy, "enforce", None)) and callable(
        getattr(strategy, "cleanup", None)
    )


class MetricEnforcer:
    """Registers strategies by type and triggers their enforcement."""

    def __init__(self, kube_client: Any = None) -> None:
        self.kube_client = kube_client
        self.registered_strategies: dict[str, list[Strategy]] = {}
        self._lock = threading.RLock()

    def register_strategy_type(self, strategy: Strategy) -> None:
        """Add the strategy's type to the registry with no strategies under it."""
        with self._lock:
            self.registered_strategies[strategy.strategy_type()] = []

    def is_registered(self, strategy_type: str) -> bool:
        """Return whether the strategy type is in the registry."""
        with self._lock:
            return strategy_type in self.registered_strategies

    def unregister_strategy_type(self, strategy: Strategy) -> None:
        """Drop the strategy's type from the registry; do nothing if it is absent."""
        with self._lock:
            self.registered_strategies.pop(strategy.strategy_type(), None)

    def registered_strategy_types(self) -> list[str]:
        """Return the names of the registered strategy types."""
        with self._lock:
            return list(self.registered_strategies)

    def remove_strategy(self, strategy: Strategy, strategy_type: str) -> None:
        """Remove every registered strategy equal to ``strategy`` and clean up after it."""
        with self._lock:
            registered = self.registered_strategies.get(strategy_type)
            if registered is not None:
                kept = []
                for existing in registered:
                    if existing.equals(strategy):
                        logger.info(
                            "Removed %s: %s from strategy register",
                            existing.policy_name,
                            strategy_type,
                        )
                    else:
                        kept.append(existing)
                registered[:] = kept
            if _is_enforceable(strategy):
                try:
                    strategy.cleanup(self, strategy.policy_name)
                except Exception as exc:
                    logger.info("Failed to remove strategy: %s", exc)

    def add_strategy(self, strategy: Strategy, strategy_type: str) -> None:
        """Register an enforceable strategy under a registered type, skipping duplicates."""
        with self._lock:
            registered = self.registered_strategies.get(strategy_type)
            for existing in registered or []:
                if existing.equals(strategy):
                    logger.info(
                        "Duplicate strategy found. Not adding %s: %s to registry",
                        existing.policy_name,
                        existing.strategy_type(),
                    )
                    return
            logger.info(
                "Adding strategies: %s %s", strategy.strategy_type(), strategy.policy_name
            )
            if registered is not None and _is_enforceable(strategy):
                registered.append(strategy)

    def enforce_strategy(self, strategy_type: str, cache: Any) -> None:
        """Call ``enforce`` on every enforceable strategy registered under the type."""
        with self._lock:
            for strategy in list(self.registered_strategies.get(strategy_type) or []):
                if not _is_enforceable(strategy):
                    continue
                try:
                    strategy.enforce(self, cache)
                except Exception as exc:
                    logger.warning("Strategy was not enforceable. %s", exc)

    def enforce_registered_strategies(
        self,
        cache: Any,
        interval: float,
        stop_event: threading.Event | None = None,
    ) -> None:
        """Every ``interval`` seconds enforce each registered type, until ``stop_event`` is set."""
        stop = stop_event if stop_event is not None else threading.Event()
        while not stop.wait(interval):
            for strategy_type in self.registered_strategy_types():
                threading.Thread(
                    target=self.enforce_strategy,
                    args=(strategy_type, cache),
                    daemon=True,
                ).start()