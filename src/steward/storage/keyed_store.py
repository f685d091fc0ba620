"""
Flat-file document store keyed by table name and guild id.

Each table is one UTF-8 JSON file ``<data_dir>/<table>.json`` holding a
mapping of guild id to a guild-scoped document. Some tables nest a second
level keyed by user id. Every mutation rewrites the whole file.

Locking
-------
Read-modify-write helpers run under a per-table ``threading.RLock`` so two
threads (or a command handler and a scheduler tick dispatched to a worker)
can never interleave and lose an update. File access additionally takes an
``fcntl`` advisory lock on ``<table>.json.lock``, shared for reads and
exclusive for writes, so a second process touching the same directory waits
instead of clobbering. Writes go to ``<table>.json.tmp`` which is then
renamed over the table, so a reader never sees a half-written file.
"""

from __future__ import annotations

import fcntl
import json
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Union

from steward.datatypes.discord_datatypes import Snowflake
from steward.storage.errors import StoreReadError, StoreTypeError, StoreWriteError
from steward.util.logger import get_logger

logger = get_logger("keyed_store")

Key = Union[str, int, Snowflake]
Predicate = Callable[[Any], bool]


def _validate_name(kind: str, name: str) -> str:
    if not name or name in (".", "..") or "/" in name or "\\" in name or "\x00" in name:
        raise ValueError(f"Invalid {kind} name: {name!r}")
    return name


class KeyedStore:
    """
    JSON table store shared by command handlers and the schedulers.

    Args:
        data_dir: Directory holding the table files; created on demand.
        fail_open: When True, a corrupt or unreadable table reads as ``{}``
            and a failed write is only logged. When False (default) both
            raise a :class:`~steward.storage.errors.StoreError`.
    """

    def __init__(self, data_dir: Path, *, fail_open: bool = False) -> None:
        self.data_dir = Path(data_dir)
        self.fail_open = fail_open
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._lock_depth: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Paths and locking
    # ------------------------------------------------------------------

    def table_path(self, table: str) -> Path:
        return self.data_dir / f"{_validate_name('table', table)}.json"

    def _thread_lock(self, table: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(table)
            if lock is None:
                lock = self._locks[table] = threading.RLock()
            return lock

    @contextmanager
    def _locked(self, table: str, *, exclusive: bool) -> Iterator[None]:
        """Hold the table's thread lock and, on the outermost entry, its file lock.

        flock is per open file description, so re-locking from a nested call
        would deadlock against ourselves; only the outermost holder takes it.
        """
        path = self.table_path(table)
        with self._thread_lock(table):
            depth = self._lock_depth.get(table, 0)
            self._lock_depth[table] = depth + 1
            try:
                if depth:
                    yield
                    return
                self.data_dir.mkdir(parents=True, exist_ok=True)
                with open(path.with_name(path.name + ".lock"), "a") as handle:
                    fcntl.flock(handle.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
                    try:
                        yield
                    finally:
                        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
            finally:
                self._lock_depth[table] = depth

    # ------------------------------------------------------------------
    # Whole-table primitives
    # ------------------------------------------------------------------

    def _load(self, table: str) -> Dict[str, Any]:
        path = self.table_path(table)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            return self._read_failed(table, f"could not read {path}: {exc}")

        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            return self._read_failed(table, f"corrupt JSON in {path}: {exc}")
        if not isinstance(data, dict):
            return self._read_failed(table, f"{path} does not hold a JSON object")
        return data

    def _read_failed(self, table: str, message: str) -> Dict[str, Any]:
        logger.error("[KEYED STORE] Failed to read table '%s': %s", table, message)
        if self.fail_open:
            return {}
        raise StoreReadError(table, message)

    def _dump(self, table: str, data: Dict[str, Any]) -> None:
        path = self.table_path(table)
        tmp = path.with_name(path.name + ".tmp")
        try:
            payload = json.dumps(data, indent=2, ensure_ascii=False)
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp, path)
        except (TypeError, ValueError, OSError) as exc:
            logger.error("[KEYED STORE] Failed to write table '%s': %s", table, exc)
            if not self.fail_open:
                raise StoreWriteError(table, str(exc)) from exc

    def read(self, table: str) -> Dict[str, Any]:
        """Return the whole table; a table that does not exist reads as ``{}``."""
        with self._locked(table, exclusive=False):
            return self._load(table)

    def write(self, table: str, data: Dict[str, Any]) -> None:
        """Serialize ``data`` and replace the whole table with it."""
        if not isinstance(data, dict):
            raise StoreTypeError(table, f"table contents must be a dict, not {type(data).__name__}")
        with self._locked(table, exclusive=True):
            self._dump(table, data)

    @contextmanager
    def transaction(self, table: str) -> Iterator[Dict[str, Any]]:
        """Read a table, let the caller mutate it, then write it back.

        The table stays locked for the whole block. If the block raises,
        nothing is written.

        Example:
            >>> with store.transaction("reminders") as data:
            ...     data.setdefault("reminders", []).append(record)
        """
        with self._locked(table, exclusive=True):
            data = self._load(table)
            yield data
            self._dump(table, data)

    def modify(self, table: str, mutator: Callable[[Dict[str, Any]], bool]) -> bool:
        """Like :meth:`transaction`, but only writes when ``mutator`` reports a change.

        Returns:
            bool: Whatever ``mutator`` returned, as a bool.
        """
        with self._locked(table, exclusive=True):
            data = self._load(table)
            changed = bool(mutator(data))
            if changed:
                self._dump(table, data)
            return changed

    # ------------------------------------------------------------------
    # Guild scope
    # ------------------------------------------------------------------

    @staticmethod
    def _guild_slot(table: str, data: Dict[str, Any], guild_id: Key, *, create: bool) -> Dict[str, Any] | None:
        key = str(guild_id)
        slot = data.get(key)
        if slot is None:
            if not create:
                return None
            slot = data[key] = {}
        if not isinstance(slot, dict):
            raise StoreTypeError(table, f"guild {key} holds {type(slot).__name__}, expected an object")
        return slot

    @staticmethod
    def _list_at(table: str, slot: Dict[str, Any], key: str, *, create: bool) -> List[Any] | None:
        value = slot.get(key)
        if value is None:
            if not create:
                return None
            value = slot[key] = []
        if not isinstance(value, list):
            raise StoreTypeError(table, f"'{key}' holds {type(value).__name__}, expected a list")
        return value

    def read_guild(self, table: str, guild_id: Key) -> Dict[str, Any]:
        """Return one guild's document, ``{}`` if the guild has none."""
        return self._guild_slot(table, self.read(table), guild_id, create=False) or {}

    def write_guild(self, table: str, guild_id: Key, document: Dict[str, Any]) -> None:
        with self.transaction(table) as data:
            data[str(guild_id)] = document

    def update_guild_key(self, table: str, guild_id: Key, key: str, value: Any) -> None:
        with self.transaction(table) as data:
            self._guild_slot(table, data, guild_id, create=True)[key] = value

    def append_to_guild_array(self, table: str, guild_id: Key, key: str, item: Any) -> None:
        """Append ``item`` to the list at ``data[guild_id][key]``, creating it if absent.

        Raises:
            StoreTypeError: If the key already holds something other than a list.
        """
        with self.transaction(table) as data:
            slot = self._guild_slot(table, data, guild_id, create=True)
            self._list_at(table, slot, key, create=True).append(item)

    def remove_from_guild_array(self, table: str, guild_id: Key, key: str, predicate: Predicate) -> int:
        """Drop every item of ``data[guild_id][key]`` matching ``predicate``.

        Returns:
            int: Number of items removed. The table is only rewritten when
            this is non-zero.
        """
        with self._locked(table, exclusive=True):
            data = self._load(table)
            slot = self._guild_slot(table, data, guild_id, create=False)
            items = self._list_at(table, slot, key, create=False) if slot is not None else None
            if not items:
                return 0
            kept = [item for item in items if not predicate(item)]
            removed = len(items) - len(kept)
            if removed:
                slot[key] = kept
                self._dump(table, data)
            return removed

    # ------------------------------------------------------------------
    # User scope (nested under guild)
    # ------------------------------------------------------------------

    def read_user(self, table: str, guild_id: Key, user_id: Key) -> Any:
        """Return the value stored for a user in a guild, or None."""
        return self.read_guild(table, guild_id).get(str(user_id))

    def write_user(self, table: str, guild_id: Key, user_id: Key, value: Any) -> None:
        with self.transaction(table) as data:
            self._guild_slot(table, data, guild_id, create=True)[str(user_id)] = value

    def append_to_user_array(self, table: str, guild_id: Key, user_id: Key, item: Any) -> None:
        self.append_to_guild_array(table, guild_id, str(user_id), item)

    def remove_from_user_array(self, table: str, guild_id: Key, user_id: Key, predicate: Predicate) -> int:
        return self.remove_from_guild_array(table, guild_id, str(user_id), predicate)

    # ------------------------------------------------------------------
    # Free-standing documents
    # ------------------------------------------------------------------

    def write_document(self, subdir: str, filename: str, data: Any) -> Path:
        """Write a standalone JSON document to ``<data_dir>/<subdir>/<filename>``.

        Used for exports (e.g. ticket transcripts) that do not belong to a table.

        Raises:
            StoreWriteError: If the document cannot be written and the store
                is not fail-open.
        """
        directory = self.data_dir / _validate_name("subdirectory", subdir)
        path = directory / _validate_name("file", filename)
        tmp = path.with_name(path.name + ".tmp")
        try:
            payload = json.dumps(data, indent=2, ensure_ascii=False)
            directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, path)
        except (TypeError, ValueError, OSError) as exc:
            logger.error("[KEYED STORE] Failed to write %s/%s: %s", subdir, filename, exc)
            if not self.fail_open:
                raise StoreWriteError(f"{subdir}/{filename}", str(exc)) from exc
            return path
        logger.info("[KEYED STORE] Wrote file: %s/%s", subdir, filename)
        return path
