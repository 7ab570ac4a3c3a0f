from __future__ import annotations

import pytest

from dartmatch.scoring.errors import MatchFinished, NoMatchInProgress
from dartmatch.scoring.game import MatchConfig, Player
from dartmatch.scoring.store import FileKeyValueStore, InMemoryKeyValueStore, MatchSession

STATE_KEY = "state"
SETTINGS_KEY = "settings"


def _config(**kwargs) -> MatchConfig:
    return MatchConfig(players=(Player("1", "Player 1"), Player("2", "Player 2")), **kwargs)


def _session(kv) -> MatchSession:
    return MatchSession(kv, state_key=STATE_KEY, settings_key=SETTINGS_KEY)


def test_no_match_until_started() -> None:
    session = _session(InMemoryKeyValueStore())
    assert session.resume() is None
    assert not session.in_progress
    with pytest.raises(NoMatchInProgress):
        session.state()
    with pytest.raises(NoMatchInProgress):
        session.record_throw(20, 1)


def test_every_accepted_event_is_saved_and_resumable() -> None:
    kv = InMemoryKeyValueStore()
    session = _session(kv)
    session.start(_config())
    session.record_throw(20, 3)
    session.record_throw(19, 3)
    session.undo()

    resumed = _session(kv)
    state = resumed.resume()
    assert state == session.state()
    assert resumed.config() == session.config()
    assert state.remaining_scores == (441, 501)


def test_undo_on_empty_turn_is_a_no_op() -> None:
    session = _session(InMemoryKeyValueStore())
    started = session.start(_config())
    assert session.undo() is started


def test_corrupt_snapshot_means_no_match() -> None:
    kv = InMemoryKeyValueStore()
    session = _session(kv)
    session.start(_config())
    kv.set(STATE_KEY, '{"active_player_index": "oops"')

    resumed = _session(kv)
    assert resumed.resume() is None
    assert not resumed.in_progress
    assert kv.get(STATE_KEY) is None
    assert resumed.last_config() == _config()


def test_state_without_settings_is_discarded() -> None:
    kv = InMemoryKeyValueStore()
    session = _session(kv)
    session.start(_config())
    kv.delete(SETTINGS_KEY)

    assert _session(kv).resume() is None
    assert kv.get(STATE_KEY) is None


def test_won_match_clears_state_but_keeps_settings() -> None:
    kv = InMemoryKeyValueStore()
    session = _session(kv)
    session.start(_config(starting_score=40))

    outcome = session.record_throw(20, 2)
    assert [n.kind for n in outcome.notifications] == ["leg_won", "set_won", "match_won"]
    assert session.state().is_over
    assert kv.get(STATE_KEY) is None
    assert kv.get(SETTINGS_KEY) is not None

    with pytest.raises(MatchFinished):
        session.record_throw(20, 1)
    assert _session(kv).resume() is None


def test_end_match_is_always_allowed() -> None:
    kv = InMemoryKeyValueStore()
    session = _session(kv)
    session.end_match()

    session.start(_config())
    session.record_throw(1, 1)
    session.end_match()
    assert not session.in_progress
    assert kv.get(STATE_KEY) is None
    assert session.last_config() == _config()


def test_file_store_round_trip(tmp_path) -> None:
    kv = FileKeyValueStore(tmp_path / "data")
    assert kv.get("k") is None
    kv.set("k", '{"a": 1}')
    assert kv.get("k") == '{"a": 1}'
    kv.set("k", "[]")
    assert kv.get("k") == "[]"
    kv.delete("k")
    kv.delete("k")
    assert kv.get("k") is None


def test_file_store_rejects_path_like_keys(tmp_path) -> None:
    kv = FileKeyValueStore(tmp_path)
    with pytest.raises(ValueError):
        kv.set("../escape", "x")


def test_session_resumes_from_files(tmp_path) -> None:
    session = _session(FileKeyValueStore(tmp_path))
    session.start(_config())
    session.record_throw(25, 1)

    resumed = _session(FileKeyValueStore(tmp_path))
    state = resumed.resume()
    assert state is not None
    assert state.remaining_scores == (476, 501)
    assert state.turn_labels == ("25",)


def test_garbage_file_means_no_match(tmp_path) -> None:
    (tmp_path / f"{SETTINGS_KEY}.json").write_bytes(b"\xff\xfe garbage")
    (tmp_path / f"{STATE_KEY}.json").write_bytes(b"\x00")
    session = _session(FileKeyValueStore(tmp_path))
    assert session.resume() is None
    assert session.last_config() is None


def test_unreadable_file_means_no_match(tmp_path) -> None:
    (tmp_path / f"{STATE_KEY}.json").mkdir()
    kv = FileKeyValueStore(tmp_path)
    assert kv.get(STATE_KEY) is None
    assert _session(kv).resume() is None
