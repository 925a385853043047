from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

ErrorHook = Callable[[str, BaseException], None]


@dataclass(slots=True, frozen=True)
class TickTag:
    kind: str
    seq: int
    issued_at_ms: float


@dataclass(slots=True)
class ProbeJob:
    kind: str
    interval_ms: int
    run: Callable[[], Awaitable[Any]]
    apply: Callable[[TickTag, Any], None]
    max_in_flight: Optional[int] = None
    in_flight: int = 0
    next_seq: int = 0
    last_applied_seq: int = -1


@dataclass(slots=True)
class Timer:
    kind: str
    interval_ms: int
    callback: Callable[[], None]


class ProbeScheduler:
    """Periodic tick driver for one event loop.

    Ticks of the same kind may overlap, up to the job's ``max_in_flight``.
    Each carries a ``TickTag`` and its result reaches ``apply`` only if no
    newer tick of that kind got there first. After ``stop()`` nothing
    reaches ``apply`` at all.
    """

    def __init__(self, clock: Callable[[], float], on_error: Optional[ErrorHook] = None) -> None:
        self._clock = clock
        self._on_error = on_error
        self._jobs: Dict[str, ProbeJob] = {}
        self._timers: Dict[str, Timer] = {}
        self._loops: Dict[str, asyncio.Task] = {}
        self._inflight: Set[asyncio.Task] = set()
        self._started = False
        self._closed = False

    @property
    def running(self) -> bool:
        return self._started and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    def add_probe_job(
        self,
        kind: str,
        interval_ms: int,
        run: Callable[[], Awaitable[Any]],
        apply: Callable[[TickTag, Any], None],
        max_in_flight: Optional[int] = None,
    ) -> None:
        self._check_new_kind(kind)
        self._jobs[kind] = ProbeJob(
            kind=kind, interval_ms=interval_ms, run=run, apply=apply, max_in_flight=max_in_flight
        )

    def add_timer(self, kind: str, interval_ms: int, callback: Callable[[], None]) -> None:
        self._check_new_kind(kind)
        self._timers[kind] = Timer(kind=kind, interval_ms=interval_ms, callback=callback)

    def _check_new_kind(self, kind: str) -> None:
        if kind in self._jobs or kind in self._timers:
            raise ValueError(f"duplicate tick kind: {kind}")

    def start(self) -> None:
        if self._closed:
            raise RuntimeError("scheduler already stopped")
        if self._started:
            return
        self._started = True
        for kind, job in self._jobs.items():
            self._loops[kind] = asyncio.create_task(
                self._periodic(kind, job.interval_ms, lambda k=kind: self.fire(k)), name=f"netpulse-{kind}"
            )
        for kind, timer in self._timers.items():
            self._loops[kind] = asyncio.create_task(
                self._periodic(kind, timer.interval_ms, timer.callback), name=f"netpulse-{kind}"
            )
        logger.info(
            "scheduler_started",
            extra={"extra_fields": {"jobs": sorted(self._jobs), "timers": sorted(self._timers)}},
        )

    def stop(self) -> None:
        if self._closed:
            return
        self._closed = True
        tasks: List[asyncio.Task] = list(self._loops.values()) + list(self._inflight)
        for task in tasks:
            task.cancel()
        self._loops.clear()
        self._inflight.clear()
        logger.info("scheduler_stopped", extra={"extra_fields": {"cancelled": len(tasks)}})

    async def _periodic(self, kind: str, interval_ms: int, fire: Callable[[], Any]) -> None:
        while not self._closed:
            try:
                fire()
            except Exception as e:
                self._report(kind, e)
            await asyncio.sleep(interval_ms / 1000.0)

    def issue_tag(self, kind: str) -> TickTag:
        job = self._jobs[kind]
        tag = TickTag(kind=kind, seq=job.next_seq, issued_at_ms=self._clock())
        job.next_seq += 1
        return tag

    def fire(self, kind: str) -> Optional[asyncio.Task]:
        """Issue one tick of ``kind`` now; returns its task.

        Returns None without issuing anything when stopped, or when the job
        already has ``max_in_flight`` unfinished ticks.
        """
        if self._closed:
            return None
        job = self._jobs[kind]
        if job.max_in_flight is not None and job.in_flight >= job.max_in_flight:
            logger.debug("tick_skipped", extra={"extra_fields": {"kind": kind, "in_flight": job.in_flight}})
            return None
        tag = self.issue_tag(kind)
        task = asyncio.create_task(self._run_tick(job, tag))
        job.in_flight += 1
        self._inflight.add(task)
        task.add_done_callback(functools.partial(self._tick_done, job))
        return task

    def _tick_done(self, job: ProbeJob, task: asyncio.Task) -> None:
        job.in_flight -= 1
        self._inflight.discard(task)

    async def _run_tick(self, job: ProbeJob, tag: TickTag) -> None:
        try:
            result = await job.run()
        except Exception as e:
            self._report(job.kind, e)
            return
        self.apply_result(tag, result)

    def apply_result(self, tag: TickTag, result: Any) -> bool:
        """Hand ``result`` to its job's applier unless it is stale or late."""
        if self._closed:
            logger.debug("tick_after_stop", extra={"extra_fields": {"kind": tag.kind, "seq": tag.seq}})
            return False
        job = self._jobs[tag.kind]
        if tag.seq <= job.last_applied_seq:
            logger.debug(
                "stale_tick_dropped",
                extra={"extra_fields": {"kind": tag.kind, "seq": tag.seq, "last_applied": job.last_applied_seq}},
            )
            return False
        job.last_applied_seq = tag.seq
        try:
            job.apply(tag, result)
        except Exception as e:
            self._report(tag.kind, e)
        return True

    def _report(self, kind: str, exc: BaseException) -> None:
        logger.exception("tick_error", extra={"extra_fields": {"kind": kind, "error": str(exc)}})
        if self._on_error is None:
            return
        try:
            self._on_error(kind, exc)
        except Exception:
            logger.exception("tick_error_hook_failed", extra={"extra_fields": {"kind": kind}})


__all__ = ["ProbeScheduler", "ProbeJob", "TickTag", "Timer"]
