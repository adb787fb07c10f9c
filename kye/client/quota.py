from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Callable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from kye.backend import constants
from kye.client.storage import Storage, StorageError


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def local_now() -> datetime:
	return datetime.now().astimezone()


def next_local_midnight(moment: datetime) -> datetime:
	midnight = datetime.combine(moment.date() + timedelta(days=1), time.min)
	return midnight.replace(tzinfo=moment.tzinfo)


class _StoredQuota(BaseModel):
	model_config = ConfigDict(populate_by_name=True, extra="ignore")

	used_count: int = Field(..., ge=0, alias="usedCount")
	reset_at: datetime = Field(..., alias="resetAt")


@dataclass(frozen=True)
class RateLimitState:
	used_count: int
	max_uses: int
	reset_at: Optional[datetime]

	@property
	def remaining(self) -> int:
		return max(0, self.max_uses - self.used_count)


class UsageQuotaTracker:
	"""Advisory daily allowance of interpretations, persisted in client storage.

	The window resets at the next local midnight after its first recorded
	use. An expired window reads as zero usage without being rewritten;
	the next record_use() starts a fresh window.
	"""

	def __init__(
		self,
		storage: Storage,
		*,
		max_uses: int = constants.DEFAULT_MAX_USES,
		key: str = constants.RATE_LIMIT_STORAGE_KEY,
		clock: Clock = local_now,
	) -> None:
		self.storage = storage
		self.max_uses = max(0, max_uses)
		self.key = key
		self._clock = clock

	def _parse(self, raw: Optional[str]) -> Optional[_StoredQuota]:
		if raw is None:
			return None
		try:
			stored = _StoredQuota.model_validate(json.loads(raw))
		except (json.JSONDecodeError, ValidationError) as exc:
			logger.warning("discarding corrupt quota data under %r: %s", self.key, exc)
			return None
		if stored.reset_at.tzinfo is None:
			stored = stored.model_copy(update={"reset_at": stored.reset_at.replace(tzinfo=self._clock().tzinfo)})
		return stored

	def _window(self, raw: Optional[str]) -> Tuple[int, Optional[datetime]]:
		stored = self._parse(raw)
		if stored is None or self._clock() >= stored.reset_at:
			return 0, None
		return min(stored.used_count, self.max_uses), stored.reset_at

	def _read(self) -> Optional[str]:
		try:
			return self.storage.get(self.key)
		except StorageError as exc:
			logger.warning("quota storage unreadable, counting as unused: %s", exc)
			return None

	def state(self) -> RateLimitState:
		count, reset_at = self._window(self._read())
		return RateLimitState(used_count=count, max_uses=self.max_uses, reset_at=reset_at)

	def used_count(self) -> int:
		return self.state().used_count

	def remaining(self) -> int:
		return self.state().remaining

	def reset_time(self) -> Optional[datetime]:
		return self.state().reset_at

	def can_use(self) -> bool:
		return self.used_count() < self.max_uses

	@property
	def is_limited(self) -> bool:
		return not self.can_use()

	def record_use(self) -> int:
		"""Count one completed interpretation and return the uses left.

		Writes go through compare_and_set so writers sharing the storage
		never push the count past max_uses. The quota is advisory: a storage
		failure is logged and the use is not persisted.
		"""
		try:
			while True:
				raw = self.storage.get(self.key)
				count, reset_at = self._window(raw)
				if count >= self.max_uses:
					return 0
				if reset_at is None:
					reset_at = next_local_midnight(self._clock())
				value = json.dumps({"usedCount": count + 1, "resetAt": reset_at.isoformat()})
				if self.storage.compare_and_set(self.key, raw, value):
					return self.max_uses - (count + 1)
				logger.debug("quota write raced under %r; retrying", self.key)
		except StorageError as exc:
			logger.warning("could not persist quota use: %s", exc)
			return max(0, self.max_uses - 1)

	def reset(self) -> None:
		try:
			self.storage.delete(self.key)
		except StorageError as exc:
			logger.warning("could not clear quota: %s", exc)
