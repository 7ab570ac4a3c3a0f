from __future__ import annotations

from pydantic import BaseModel, Field, ValidationError

from dartmatch.scoring.errors import InvalidConfig, InvalidThrow, SnapshotError
from dartmatch.scoring.game import (
    DARTS_PER_TURN,
    Dart,
    MatchConfig,
    MatchState,
    Player,
    Throw,
    TurnState,
)


class PlayerSnapshot(BaseModel):
    id: str
    name: str


class ConfigSnapshot(BaseModel):
    players: list[PlayerSnapshot]
    starting_score: int
    legs: int
    sets: int
    double_in: bool = False
    double_out: bool = True


class ThrowSnapshot(BaseModel):
    player_id: str
    value: int
    multiplier: int
    points: int = Field(..., ge=0)
    bust: bool = False
    opened_leg: bool = False


class TurnSnapshot(BaseModel):
    start_score: int
    darts: list[ThrowSnapshot] = Field(default_factory=list, max_length=DARTS_PER_TURN)


class StateSnapshot(BaseModel):
    active_player_index: int = Field(..., ge=0)
    remaining_scores: list[int]
    legs_won: list[int]
    sets_won: list[int]
    has_started_leg: list[bool]
    current_leg: int = Field(..., ge=1)
    current_set: int = Field(..., ge=1)
    turn: TurnSnapshot
    history: list[ThrowSnapshot] = Field(default_factory=list)
    winner_index: int | None = None


def _throw_to_snapshot(t: Throw) -> ThrowSnapshot:
    return ThrowSnapshot(
        player_id=t.player_id,
        value=t.dart.value,
        multiplier=t.dart.multiplier,
        points=t.points,
        bust=t.bust,
        opened_leg=t.opened_leg,
    )


def _throw_from_snapshot(t: ThrowSnapshot) -> Throw:
    return Throw(
        player_id=t.player_id,
        dart=Dart(t.value, t.multiplier),
        points=t.points,
        bust=t.bust,
        opened_leg=t.opened_leg,
    )


def dump_config(config: MatchConfig) -> str:
    snap = ConfigSnapshot(
        players=[PlayerSnapshot(id=p.player_id, name=p.name) for p in config.players],
        starting_score=config.starting_score,
        legs=config.legs,
        sets=config.sets,
        double_in=config.double_in,
        double_out=config.double_out,
    )
    return snap.model_dump_json()


def load_config(blob: str | bytes) -> MatchConfig:
    try:
        snap = ConfigSnapshot.model_validate_json(blob)
        return MatchConfig(
            players=tuple(Player(p.id, p.name) for p in snap.players),
            starting_score=snap.starting_score,
            legs=snap.legs,
            sets=snap.sets,
            double_in=snap.double_in,
            double_out=snap.double_out,
        )
    except (ValidationError, InvalidConfig) as e:
        raise SnapshotError(f"bad config snapshot: {e}") from e


def dump_state(state: MatchState) -> str:
    snap = StateSnapshot(
        active_player_index=state.active_player_index,
        remaining_scores=list(state.remaining_scores),
        legs_won=list(state.legs_won),
        sets_won=list(state.sets_won),
        has_started_leg=list(state.has_started_leg),
        current_leg=state.current_leg,
        current_set=state.current_set,
        turn=TurnSnapshot(
            start_score=state.turn.start_score,
            darts=[_throw_to_snapshot(t) for t in state.turn.darts],
        ),
        history=[_throw_to_snapshot(t) for t in state.history],
        winner_index=state.winner_index,
    )
    return snap.model_dump_json()


def _check_consistent(config: MatchConfig, state: MatchState) -> None:
    """
    Reject a decoded state that could not have come from this config.
    """
    n = config.player_count
    per_player = (state.remaining_scores, state.legs_won, state.sets_won, state.has_started_leg)
    if any(len(values) != n for values in per_player):
        raise SnapshotError("per-player lists do not match the number of players")
    if state.active_player_index >= n:
        raise SnapshotError("active player index out of range")
    if state.winner_index is not None and not 0 <= state.winner_index < n:
        raise SnapshotError("winner index out of range")
    if any(not 0 <= r <= config.starting_score for r in state.remaining_scores):
        raise SnapshotError("remaining score out of range")
    if any(v < 0 for v in (*state.legs_won, *state.sets_won)):
        raise SnapshotError("negative leg or set count")
    if not config.double_in and not all(state.has_started_leg):
        raise SnapshotError("leg not started although double-in is off")

    ids = {p.player_id for p in config.players}
    if any(t.player_id not in ids for t in state.history):
        raise SnapshotError("history names an unknown player")
    # A dart scores its face value or nothing (bust, or before double-in).
    if any(t.points not in (0, t.dart.score) or (t.bust and t.points) for t in state.history):
        raise SnapshotError("history holds a dart with impossible points")

    turn = state.turn
    if not 0 <= turn.start_score <= config.starting_score:
        raise SnapshotError("turn start score out of range")
    if turn.darts:
        if tuple(state.history[-turn.dart_count :]) != turn.darts:
            raise SnapshotError("open turn is not the tail of the history")
        active_id = config.players[state.active_player_index].player_id
        if any(t.player_id != active_id or t.bust for t in turn.darts):
            raise SnapshotError("open turn holds darts that are not the active player's")
    if turn.start_score - sum(t.points for t in turn.darts) != state.remaining_scores[state.active_player_index]:
        raise SnapshotError("turn start score does not add up to the remaining score")


def load_state(blob: str | bytes, config: MatchConfig) -> MatchState:
    try:
        snap = StateSnapshot.model_validate_json(blob)
        state = MatchState(
            active_player_index=snap.active_player_index,
            remaining_scores=tuple(snap.remaining_scores),
            legs_won=tuple(snap.legs_won),
            sets_won=tuple(snap.sets_won),
            has_started_leg=tuple(snap.has_started_leg),
            current_leg=snap.current_leg,
            current_set=snap.current_set,
            turn=TurnState(
                start_score=snap.turn.start_score,
                darts=tuple(_throw_from_snapshot(t) for t in snap.turn.darts),
            ),
            history=tuple(_throw_from_snapshot(t) for t in snap.history),
            winner_index=snap.winner_index,
        )
    except (ValidationError, InvalidThrow) as e:
        raise SnapshotError(f"bad state snapshot: {e}") from e

    _check_consistent(config, state)
    return state
