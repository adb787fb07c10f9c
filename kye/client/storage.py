from __future__ import annotations

import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

from kye.backend import constants


class StorageError(Exception):
	"""Persistent storage could not be read or written."""


class Storage(Protocol):
	"""Key/value capability used for client-persisted state."""

	def get(self, key: str) -> Optional[str]: ...

	def set(self, key: str, value: str) -> None: ...

	def delete(self, key: str) -> None: ...

	def compare_and_set(self, key: str, expected: Optional[str], value: str) -> bool: ...


class MemoryStorage:
	def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
		self._items: Dict[str, str] = dict(initial or {})
		self._lock = threading.Lock()

	def get(self, key: str) -> Optional[str]:
		with self._lock:
			return self._items.get(key)

	def set(self, key: str, value: str) -> None:
		with self._lock:
			self._items[key] = value

	def delete(self, key: str) -> None:
		with self._lock:
			self._items.pop(key, None)

	def compare_and_set(self, key: str, expected: Optional[str], value: str) -> bool:
		with self._lock:
			if self._items.get(key) != expected:
				return False
			self._items[key] = value
			return True


def _now_iso() -> str:
	return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class SqliteStorage:
	"""Key/value rows in a SQLite file shared by every process on the machine.

	compare_and_set is a single conditional statement, so concurrent
	writers in separate processes cannot lose each other's updates.
	sqlite3 and OS failures surface as StorageError.
	"""

	def __init__(self, path: Union[str, Path]) -> None:
		self.path = Path(path).expanduser()
		self._initialized = False

	def _connect(self) -> sqlite3.Connection:
		self.path.parent.mkdir(parents=True, exist_ok=True)
		conn = sqlite3.connect(str(self.path), timeout=constants.SQLITE_BUSY_TIMEOUT_MS / 1000)
		try:
			conn.execute("PRAGMA journal_mode=WAL")
			conn.execute("PRAGMA synchronous=NORMAL")
			conn.execute(f"PRAGMA busy_timeout={constants.SQLITE_BUSY_TIMEOUT_MS}")
			if not self._initialized:
				conn.execute(
					"""
					CREATE TABLE IF NOT EXISTS kv_store (
						key TEXT PRIMARY KEY,
						value TEXT NOT NULL,
						updated_at TEXT NOT NULL
					)
					"""
				)
				conn.commit()
				self._initialized = True
		except sqlite3.Error:
			conn.close()
			raise
		return conn

	def _run(self, sql: str, params: tuple) -> int:
		try:
			conn = self._connect()
			try:
				cursor = conn.execute(sql, params)
				conn.commit()
				return cursor.rowcount
			finally:
				conn.close()
		except (sqlite3.Error, OSError) as exc:
			raise StorageError(f"{self.path}: {exc}") from exc

	def get(self, key: str) -> Optional[str]:
		try:
			conn = self._connect()
			try:
				row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
			finally:
				conn.close()
		except (sqlite3.Error, OSError) as exc:
			raise StorageError(f"{self.path}: {exc}") from exc
		return row[0] if row else None

	def set(self, key: str, value: str) -> None:
		self._run(
			"""
			INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
			ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
			""",
			(key, value, _now_iso()),
		)

	def delete(self, key: str) -> None:
		self._run("DELETE FROM kv_store WHERE key = ?", (key,))

	def compare_and_set(self, key: str, expected: Optional[str], value: str) -> bool:
		if expected is None:
			changed = self._run(
				"INSERT OR IGNORE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
				(key, value, _now_iso()),
			)
		else:
			changed = self._run(
				"UPDATE kv_store SET value = ?, updated_at = ? WHERE key = ? AND value = ?",
				(value, _now_iso(), key, expected),
			)
		return changed == 1
