#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Recompute Execution Engine for Cluster Tree Explorer
Runs keyed recompute tasks in submission order, coalescing superseded ones
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

TASK_SUCCESS = "success"
TASK_FAILURE = "failure"
TASK_DISCARDED = "discarded"


@dataclass
class RecomputeTask:
    """One pending recomputation of a derived value"""
    key: str
    func: Callable[[], Any]
    generation: int


class RecomputeEngine:
    """
    Sequencer for derived-state recomputation.

    Each state change submits a task keyed by the value it recomputes. A
    newer task for a key replaces a pending one and takes its place at the
    end of the queue, so tasks always run in the order of their latest
    submission. Tasks run synchronously on the caller's thread; inside
    ``deferred()`` they wait until the outermost block exits.

    A result is applied only if its generation is newer than the last
    result applied for the same key.
    """

    def __init__(self):
        self.pending: Dict[str, RecomputeTask] = {}
        self.results: Dict[str, Any] = {}
        self.applied_generations: Dict[str, int] = {}
        self.task_status: Dict[str, str] = {}
        self.is_running = False

        self._generation = 0
        self._defer_depth = 0
        self._result_listeners: List[Callable[[str, Any], None]] = []

    def add_result_listener(self, listener: Callable[[str, Any], None]):
        """Call ``listener(key, result)`` whenever a result is applied"""
        self._result_listeners.append(listener)

    def submit(self, key: str, func: Callable[[], Any]) -> RecomputeTask:
        """
        Queue a recomputation, superseding any pending task with the same key

        Args:
            key: Name of the derived value
            func: Zero-argument callable producing the new value

        Returns:
            The queued task
        """
        self._generation += 1
        task = RecomputeTask(key=key, func=func, generation=self._generation)

        if key in self.pending:
            superseded = self.pending.pop(key)
            logger.debug(f"Task {key} (generation {superseded.generation}) superseded "
                         f"by generation {task.generation}")

        self.pending[key] = task

        if self._defer_depth == 0:
            self.flush()

        return task

    def flush(self):
        """Run every pending task, oldest submission first"""
        if self.is_running:
            # Tasks submitted by a running task join the current flush
            return

        self.is_running = True
        try:
            while self.pending:
                key = next(iter(self.pending))
                task = self.pending.pop(key)
                self._execute_task(task)
        finally:
            self.is_running = False

    def _execute_task(self, task: RecomputeTask):
        logger.debug(f"Running task {task.key} (generation {task.generation})")

        try:
            result = task.func()
        except Exception as e:
            logger.error(f"Error executing task {task.key}: {e}", exc_info=True)
            self.task_status[task.key] = TASK_FAILURE
            self.pending.clear()
            raise

        self.apply_result(task, result)

    def apply_result(self, task: RecomputeTask, result: Any) -> bool:
        """
        Store a task's result unless a newer one was already applied

        Returns:
            True if the result was applied
        """
        last = self.applied_generations.get(task.key, 0)
        if task.generation <= last:
            logger.debug(f"Discarding stale result for {task.key} "
                         f"(generation {task.generation} <= {last})")
            self.task_status[task.key] = TASK_DISCARDED
            return False

        self.applied_generations[task.key] = task.generation
        self.results[task.key] = result
        self.task_status[task.key] = TASK_SUCCESS

        for listener in self._result_listeners:
            listener(task.key, result)

        return True

    @contextmanager
    def deferred(self) -> Iterator['RecomputeEngine']:
        """Hold submitted tasks until the outermost block exits, then flush once"""
        self._defer_depth += 1
        try:
            yield self
        finally:
            self._defer_depth -= 1

        if self._defer_depth == 0:
            self.flush()

    def get_result(self, key: str, default: Optional[Any] = None) -> Any:
        return self.results.get(key, default)
