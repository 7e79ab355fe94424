"""
Session Registry
================

Owns one SessionAccuracyTracker per conversation and serializes every
mutation of it in message arrival order.

Arrival order is a per-session sequence number handed out by ``reserve``
before the message is analysed. ``submit`` waits until all lower sequence
numbers have been applied, so a retried or slow request can never fold its
score in ahead of a message that arrived earlier. A reserved number that will
never be submitted must be released with ``abandon``; a submit cancelled while
it waits releases its own number.

Sessions end explicitly through ``drop``. With an ``idle_timeout`` set, a
session with no pending turns that has not been touched for that long is
evicted the next time a new session opens.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional

from .engine import AccuracyResult, SessionAccuracyTracker, TurnOutcome
from .settings import settings


logger = logging.getLogger(__name__)


class _SessionSlot:
	def __init__(self, tracker: SessionAccuracyTracker, now: float) -> None:
		self.tracker = tracker
		self.next_seq: int = 0  # next number reserve() hands out
		self.applied: int = 0  # next number allowed to mutate the tracker
		self.abandoned: set[int] = set()
		self.condition = asyncio.Condition()
		self.touched: float = now

	@property
	def idle(self) -> bool:
		return self.applied >= self.next_seq

	def skip_abandoned(self) -> None:
		while self.applied in self.abandoned:
			self.abandoned.discard(self.applied)
			self.applied += 1


class SessionRegistry:
	def __init__(
		self,
		window: int = 20,
		quality_threshold: int = 80,
		idle_timeout: Optional[float] = None,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		self.window = window
		self.quality_threshold = quality_threshold
		self.idle_timeout = idle_timeout
		self._clock = clock
		self._slots: Dict[str, _SessionSlot] = {}

	def _slot(self, session_id: str, total_xp: int = 0) -> _SessionSlot:
		slot = self._slots.get(session_id)
		if slot is None:
			self.evict_idle()
			tracker = SessionAccuracyTracker(
				window=self.window,
				quality_threshold=self.quality_threshold,
				total_xp=total_xp,
			)
			slot = _SessionSlot(tracker, self._clock())
			self._slots[session_id] = slot
			logger.debug("Opened session %s", session_id)
		return slot

	def get(self, session_id: str) -> Optional[SessionAccuracyTracker]:
		slot = self._slots.get(session_id)
		return slot.tracker if slot else None

	def tracker(self, session_id: str, total_xp: int = 0) -> SessionAccuracyTracker:
		return self._slot(session_id, total_xp).tracker

	def session_ids(self) -> List[str]:
		return list(self._slots)

	def reserve(self, session_id: str, total_xp: int = 0) -> int:
		slot = self._slot(session_id, total_xp)
		seq = slot.next_seq
		slot.next_seq += 1
		slot.touched = self._clock()
		return seq

	def _checked_slot(self, session_id: str, seq: int) -> _SessionSlot:
		slot = self._slots.get(session_id)
		if slot is None:
			raise KeyError(session_id)
		if seq < slot.applied or seq >= slot.next_seq or seq in slot.abandoned:
			raise ValueError(f"Sequence {seq} is not pending for session {session_id}")
		return slot

	async def submit(
		self,
		session_id: str,
		seq: int,
		result: AccuracyResult,
		message_length: int,
		*,
		total_xp: Optional[int] = None,
	) -> TurnOutcome:
		"""Apply a turn once every earlier turn of the session has been applied.

		``total_xp`` is the learner's persisted XP, if known; the tracker never
		moves below it.
		"""
		slot = self._checked_slot(session_id, seq)
		async with slot.condition:
			try:
				await slot.condition.wait_for(lambda: slot.applied == seq)
			except asyncio.CancelledError:
				# The lock is held again here; give the number up so later turns proceed
				slot.abandoned.add(seq)
				slot.skip_abandoned()
				slot.condition.notify_all()
				logger.info("Turn %s of session %s cancelled while waiting", seq, session_id)
				raise
			try:
				if total_xp is not None and total_xp > slot.tracker.total_xp:
					slot.tracker.total_xp = total_xp
				outcome = slot.tracker.process_turn(result, message_length)
			finally:
				slot.applied += 1
				slot.skip_abandoned()
				slot.touched = self._clock()
				slot.condition.notify_all()
		return outcome

	async def abandon(self, session_id: str, seq: int) -> None:
		slot = self._checked_slot(session_id, seq)
		async with slot.condition:
			slot.abandoned.add(seq)
			slot.skip_abandoned()
			slot.condition.notify_all()
		logger.info("Abandoned turn %s of session %s", seq, session_id)

	def reset(self, session_id: str) -> bool:
		slot = self._slots.get(session_id)
		if slot is None:
			return False
		slot.tracker.reset()
		return True

	def drop(self, session_id: str) -> Optional[SessionAccuracyTracker]:
		"""End a session. Turns already waiting still finish on the dropped tracker."""
		slot = self._slots.pop(session_id, None)
		if slot is None:
			return None
		logger.debug("Closed session %s", session_id)
		return slot.tracker

	def evict_idle(self) -> List[str]:
		"""Drop sessions with no pending turns untouched for ``idle_timeout`` seconds."""
		if self.idle_timeout is None:
			return []
		cutoff = self._clock() - self.idle_timeout
		stale = [sid for sid, slot in self._slots.items() if slot.idle and slot.touched < cutoff]
		for sid in stale:
			del self._slots[sid]
		if stale:
			logger.info("Evicted %s idle sessions", len(stale))
		return stale


registry = SessionRegistry(
	window=settings.accuracy_window,
	quality_threshold=settings.quality_threshold,
	idle_timeout=settings.session_idle_seconds,
)


def get_registry() -> SessionRegistry:
	return registry
