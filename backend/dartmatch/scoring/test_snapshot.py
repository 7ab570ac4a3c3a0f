from __future__ import annotations

import json

import pytest

from dartmatch.scoring.errors import SnapshotError
from dartmatch.scoring.game import MatchConfig, Player, new_match, record_throw
from dartmatch.scoring.snapshot import dump_config, dump_state, load_config, load_state


def _config() -> MatchConfig:
    return MatchConfig(
        players=(Player("a", "Anna"), Player("b", "Ben")),
        starting_score=101,
        legs=3,
        sets=1,
        double_in=True,
        double_out=True,
    )


def _mid_match_state(config: MatchConfig):
    state = new_match(config)
    for value, multiplier in [(20, 3), (20, 2), (50, 1), (20, 3), (20, 2), (10, 2), (1, 1)]:
        state = record_throw(config, state, value, multiplier).state
    return state


def test_config_round_trip() -> None:
    config = _config()
    assert load_config(dump_config(config)) == config


def test_state_round_trip_keeps_history_order() -> None:
    config = _config()
    state = _mid_match_state(config)
    assert state.turn.dart_count > 0

    loaded = load_state(dump_state(state), config)
    assert loaded == state
    assert [t.dart.label for t in loaded.history] == [t.dart.label for t in state.history]


def test_snapshot_is_plain_json_with_numbers() -> None:
    config = _config()
    data = json.loads(dump_state(_mid_match_state(config)))
    assert isinstance(data["remaining_scores"][0], int)
    assert isinstance(data["history"], list)
    assert data["winner_index"] is None


@pytest.mark.parametrize("blob", ["", "not json", "{}", '{"players": []}', "\x00\xff"])
def test_corrupt_config_raises_snapshot_error(blob: str) -> None:
    with pytest.raises(SnapshotError):
        load_config(blob)


def test_state_for_a_different_player_count_is_rejected() -> None:
    config = _config()
    blob = dump_state(new_match(config))
    three = MatchConfig(players=(Player("a", "A"), Player("b", "B"), Player("c", "C")))
    with pytest.raises(SnapshotError):
        load_state(blob, three)


def test_state_with_bad_dart_is_rejected() -> None:
    config = _config()
    data = json.loads(dump_state(_mid_match_state(config)))
    data["history"][0]["value"] = 23
    with pytest.raises(SnapshotError):
        load_state(json.dumps(data), config)


def test_state_with_inconsistent_turn_is_rejected() -> None:
    config = _config()
    data = json.loads(dump_state(_mid_match_state(config)))
    data["turn"]["start_score"] += 5
    with pytest.raises(SnapshotError):
        load_state(json.dumps(data), config)


def test_state_with_score_out_of_range_is_rejected() -> None:
    config = _config()
    data = json.loads(dump_state(new_match(config)))
    data["remaining_scores"][1] = 102
    with pytest.raises(SnapshotError):
        load_state(json.dumps(data), config)


def test_turn_start_score_above_the_starting_score_is_rejected() -> None:
    config = _config()
    state = record_throw(config, new_match(config), 20, 2).state
    data = json.loads(dump_state(state))
    data["turn"]["start_score"] = 200
    data["turn"]["darts"][0]["points"] = 100
    data["history"][0]["points"] = 100
    data["remaining_scores"][0] = 100
    with pytest.raises(SnapshotError):
        load_state(json.dumps(data), config)


def test_dart_with_points_other_than_its_score_is_rejected() -> None:
    config = _config()
    data = json.loads(dump_state(_mid_match_state(config)))
    data["history"][0]["points"] = 7
    with pytest.raises(SnapshotError):
        load_state(json.dumps(data), config)


def test_bust_that_scored_is_rejected() -> None:
    config = _config()
    data = json.loads(dump_state(_mid_match_state(config)))
    data["history"][1]["bust"] = True
    with pytest.raises(SnapshotError):
        load_state(json.dumps(data), config)


def test_unstarted_leg_without_double_in_is_rejected() -> None:
    config = MatchConfig(players=(Player("a", "Anna"),), starting_score=101)
    data = json.loads(dump_state(new_match(config)))
    data["has_started_leg"] = [False]
    with pytest.raises(SnapshotError):
        load_state(json.dumps(data), config)


def test_turn_start_that_undo_would_restore_out_of_range_is_rejected() -> None:
    config = MatchConfig(players=(Player("a", "Anna"),), starting_score=101)
    state = record_throw(config, new_match(config), 20, 3).state
    data = json.loads(dump_state(state))
    data["turn"]["start_score"] = 161
    data["remaining_scores"][0] = 101
    with pytest.raises(SnapshotError):
        load_state(json.dumps(data), config)
