from __future__ import annotations

import logging
import re
from pathlib import Path
from threading import RLock
from typing import Protocol

from dartmatch import config as settings
from dartmatch.scoring import game
from dartmatch.scoring.errors import NoMatchInProgress, SnapshotError
from dartmatch.scoring.game import MatchConfig, MatchState, ThrowOutcome
from dartmatch.scoring.snapshot import dump_config, dump_state, load_config, load_state

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """
    Minimal in-memory key-value store; nothing survives a restart.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class FileKeyValueStore:
    """
    One `<key>.json` file per key under `directory`.

    Writes go to a temporary file that is then moved over the old one, so a
    crash mid-write leaves the previous value in place.
    """

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"invalid store key {key!r}")
        return self._dir / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("cannot read store key %r: %s", key, e)
            return None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class MatchSession:
    """
    Host for the one match in progress.

    The engine itself is pure; this class holds the current config and state,
    runs each board event through the engine, and writes both snapshots to the
    key-value store after every accepted event. Mutations are serialized by a
    lock so a threaded server still has a single writer.

    Once a match is won or ended its state snapshot is removed. The settings
    snapshot is kept so the next match can start from the same settings.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        *,
        state_key: str = settings.STATE_KEY,
        settings_key: str = settings.SETTINGS_KEY,
    ) -> None:
        self._lock = RLock()
        self._kv = kv
        self._state_key = state_key
        self._settings_key = settings_key
        self._config: MatchConfig | None = None
        self._state: MatchState | None = None

    @property
    def in_progress(self) -> bool:
        return self._state is not None

    def config(self) -> MatchConfig:
        with self._lock:
            if self._config is None:
                raise NoMatchInProgress()
            return self._config

    def state(self) -> MatchState:
        with self._lock:
            if self._state is None:
                raise NoMatchInProgress()
            return self._state

    def _require(self) -> tuple[MatchConfig, MatchState]:
        if self._config is None or self._state is None:
            raise NoMatchInProgress()
        return self._config, self._state

    def _save(self) -> None:
        config, state = self._require()
        self._kv.set(self._settings_key, dump_config(config))
        self._kv.set(self._state_key, dump_state(state))

    def _discard_saved_state(self, reason: str) -> None:
        logger.warning("discarding saved match: %s", reason)
        self._kv.delete(self._state_key)

    def resume(self) -> MatchState | None:
        """
        Load the saved match, if any. A missing, corrupt, or finished snapshot
        means no match is in progress.
        """
        with self._lock:
            self._config = None
            self._state = None

            state_blob = self._kv.get(self._state_key)
            if state_blob is None:
                return None
            settings_blob = self._kv.get(self._settings_key)
            if settings_blob is None:
                self._discard_saved_state("no settings saved alongside it")
                return None

            try:
                config = load_config(settings_blob)
                state = load_state(state_blob, config)
            except SnapshotError as e:
                self._discard_saved_state(str(e))
                return None
            if state.is_over:
                self._discard_saved_state("match already won")
                return None

            self._config = config
            self._state = state
            logger.info(
                "resumed match: set %d leg %d, %d darts in history",
                state.current_set,
                state.current_leg,
                len(state.history),
            )
            return state

    def last_config(self) -> MatchConfig | None:
        """
        Settings of the current or most recent match, for pre-filling a new one.
        """
        with self._lock:
            if self._config is not None:
                return self._config
            blob = self._kv.get(self._settings_key)
            if blob is None:
                return None
            try:
                return load_config(blob)
            except SnapshotError as e:
                logger.warning("ignoring saved settings: %s", e)
                return None

    def start(self, config: MatchConfig) -> MatchState:
        """
        Start a new match, replacing any match in progress.
        """
        with self._lock:
            self._config = config
            self._state = game.new_match(config)
            self._save()
            logger.info(
                "match started: %d players, %d, best of %d legs / %d sets, double-in=%s double-out=%s",
                config.player_count,
                config.starting_score,
                config.legs,
                config.sets,
                config.double_in,
                config.double_out,
            )
            return self._state

    def record_throw(self, value: int, multiplier: int = 1) -> ThrowOutcome:
        with self._lock:
            config, state = self._require()
            outcome = game.record_throw(config, state, value, multiplier)
            self._state = outcome.state
            if outcome.state.is_over:
                # A won match is finished with; keep only the settings.
                self._kv.set(self._settings_key, dump_config(config))
                self._kv.delete(self._state_key)
            else:
                self._save()
            return outcome

    def undo(self) -> MatchState:
        with self._lock:
            _, state = self._require()
            undone = game.undo(state)
            if undone is not state:
                self._state = undone
                self._save()
            return undone

    def end_match(self) -> None:
        """
        Drop the match in progress, if any. Always allowed.
        """
        with self._lock:
            if self._state is not None:
                logger.info("match ended after %d darts", len(self._state.history))
            self._config = None
            self._state = None
            self._kv.delete(self._state_key)


def build_store() -> KeyValueStore:
    if settings.DATA_DIR:
        return FileKeyValueStore(settings.DATA_DIR)
    return InMemoryKeyValueStore()


_SESSION: MatchSession | None = None


def get_session() -> MatchSession:
    global _SESSION
    if _SESSION is None:
        _SESSION = MatchSession(build_store())
        _SESSION.resume()
    return _SESSION
