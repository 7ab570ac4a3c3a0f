from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import ClassVar, Sequence, TypeVar, Union

from dartmatch.scoring.errors import InvalidConfig, InvalidThrow, MatchFinished

logger = logging.getLogger(__name__)

DARTS_PER_TURN = 3
OUTER_BULL = 25
INNER_BULL = 50
SCORING_VALUES: tuple[int, ...] = (0, *range(1, 21), OUTER_BULL, INNER_BULL)

T = TypeVar("T")


def _is_int(v: object) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


@dataclass(frozen=True)
class Dart:
    """
    A single dart as reported by the board.

    - value: 1-20 for the numbered beds, 25 for the outer bull, 50 for the inner bull, 0 for a miss
    - multiplier: 1 (single), 2 (double), 3 (triple)

    A miss and the outer bull are always singles. The inner bull is reported
    already multiplied, so any multiplier sent with 50 is stored as 1.
    """

    value: int
    multiplier: int = 1

    def __post_init__(self) -> None:
        if not _is_int(self.value) or not _is_int(self.multiplier):
            raise InvalidThrow(self.value, self.multiplier, "value and multiplier must be integers")
        if self.multiplier not in (1, 2, 3):
            raise InvalidThrow(self.value, self.multiplier, "multiplier must be 1, 2, or 3")
        if self.value not in SCORING_VALUES:
            raise InvalidThrow(self.value, self.multiplier, "value must be 0-20, 25, or 50")

        if self.value == INNER_BULL:
            object.__setattr__(self, "multiplier", 1)
        elif self.value in (0, OUTER_BULL) and self.multiplier != 1:
            raise InvalidThrow(self.value, self.multiplier, "a miss or outer bull is always a single")

    @property
    def score(self) -> int:
        return self.value * self.multiplier

    @property
    def is_double(self) -> bool:
        # The inner bull counts as a double for both double-in and double-out.
        return self.multiplier == 2 or self.value == INNER_BULL

    @property
    def label(self) -> str:
        if self.value == 0:
            return "Miss"
        if self.value == INNER_BULL:
            return "Bull"
        prefix = {1: "", 2: "D", 3: "T"}[self.multiplier]
        return f"{prefix}{self.value}"


@dataclass(frozen=True)
class Player:
    player_id: str
    name: str


@dataclass(frozen=True)
class MatchConfig:
    """
    Rules of a match, fixed once the match starts.

    `legs` and `sets` are "best of" counts: a set is won on ceil(legs / 2)
    legs and the match on ceil(sets / 2) sets.
    """

    players: tuple[Player, ...]
    starting_score: int = 501
    legs: int = 1
    sets: int = 1
    double_in: bool = False
    double_out: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "players", tuple(self.players))
        if not self.players:
            raise InvalidConfig("at least one player is required")
        ids = [p.player_id for p in self.players]
        if len(set(ids)) != len(ids):
            raise InvalidConfig("player ids must be unique within a match")
        if not _is_int(self.starting_score) or self.starting_score <= 1:
            raise InvalidConfig("starting_score must be > 1")
        if not _is_int(self.legs) or self.legs <= 0:
            raise InvalidConfig("legs must be > 0")
        if not _is_int(self.sets) or self.sets <= 0:
            raise InvalidConfig("sets must be > 0")

    @property
    def player_count(self) -> int:
        return len(self.players)

    @property
    def legs_to_win(self) -> int:
        return (self.legs + 1) // 2

    @property
    def sets_to_win(self) -> int:
        return (self.sets + 1) // 2


@dataclass(frozen=True)
class Throw:
    """
    A dart recorded against a player.

    `points` is what the dart actually took off the score: zero for a dart
    thrown before a double-in opened the leg, and zero for a bust.
    """

    player_id: str
    dart: Dart
    points: int
    bust: bool = False
    opened_leg: bool = False


@dataclass(frozen=True)
class TurnState:
    start_score: int
    darts: tuple[Throw, ...] = ()

    @property
    def dart_count(self) -> int:
        return len(self.darts)


@dataclass(frozen=True)
class MatchState:
    active_player_index: int
    remaining_scores: tuple[int, ...]
    legs_won: tuple[int, ...]
    sets_won: tuple[int, ...]
    has_started_leg: tuple[bool, ...]
    turn: TurnState
    current_leg: int = 1
    current_set: int = 1
    history: tuple[Throw, ...] = ()
    winner_index: int | None = None

    @property
    def is_over(self) -> bool:
        return self.winner_index is not None

    @property
    def active_remaining(self) -> int:
        return self.remaining_scores[self.active_player_index]

    @property
    def darts_left(self) -> int:
        if self.is_over:
            return 0
        return DARTS_PER_TURN - self.turn.dart_count

    @property
    def turn_scores(self) -> tuple[int, ...]:
        return tuple(t.points for t in self.turn.darts)

    @property
    def turn_labels(self) -> tuple[str, ...]:
        return tuple(t.dart.label for t in self.turn.darts)


@dataclass(frozen=True)
class Bust:
    kind: ClassVar[str] = "bust"

    player_id: str
    restored_score: int


@dataclass(frozen=True)
class LegWon:
    kind: ClassVar[str] = "leg_won"

    player_id: str
    leg_number: int
    set_number: int
    legs_won: int


@dataclass(frozen=True)
class SetWon:
    kind: ClassVar[str] = "set_won"

    player_id: str
    set_number: int
    legs_won: int
    sets_won: int


@dataclass(frozen=True)
class MatchWon:
    kind: ClassVar[str] = "match_won"

    player_id: str
    sets_won: int


Notification = Union[Bust, LegWon, SetWon, MatchWon]


@dataclass(frozen=True)
class ThrowOutcome:
    state: MatchState
    notifications: tuple[Notification, ...] = ()

    @property
    def bust(self) -> bool:
        return any(isinstance(n, Bust) for n in self.notifications)


def _replace_at(values: Sequence[T], index: int, value: T) -> tuple[T, ...]:
    return (*values[:index], value, *values[index + 1 :])


def new_match(config: MatchConfig) -> MatchState:
    """
    Fresh state for the first leg of the first set, player 0 to throw.
    """
    n = config.player_count
    return MatchState(
        active_player_index=0,
        remaining_scores=(config.starting_score,) * n,
        legs_won=(0,) * n,
        sets_won=(0,) * n,
        has_started_leg=(not config.double_in,) * n,
        turn=TurnState(start_score=config.starting_score),
    )


def _is_bust(candidate: int, dart: Dart, *, double_out: bool) -> bool:
    # 1 can never be checked out, with or without double-out.
    if candidate < 0 or candidate == 1:
        return True
    return candidate == 0 and double_out and not dart.is_double


def _pass_turn(config: MatchConfig, state: MatchState) -> MatchState:
    next_index = (state.active_player_index + 1) % config.player_count
    return replace(
        state,
        active_player_index=next_index,
        turn=TurnState(start_score=state.remaining_scores[next_index]),
    )


def record_throw(config: MatchConfig, state: MatchState, value: int, multiplier: int = 1) -> ThrowOutcome:
    """
    Apply one dart for the active player and return the next state.

    Rules:
    - Before a double-in leg is opened, darts still use up the turn but score
      nothing unless they are a double or the inner bull.
    - Bust: the score would drop below 0, land on 1, or reach 0 (with
      double-out) on anything other than a double or the inner bull. The
      whole turn is rolled back to its start score and play passes on.
    - Reaching exactly 0 wins the leg and ends the turn straight away.
    - Otherwise the turn passes after the third dart.

    Raises InvalidThrow for a malformed dart and MatchFinished once the match
    has been won; in both cases nothing is changed.
    """
    if state.is_over:
        raise MatchFinished()

    dart = Dart(value, multiplier)
    active = state.active_player_index
    player = config.players[active]

    opens_leg = False
    points = dart.score
    if config.double_in and not state.has_started_leg[active]:
        if dart.is_double:
            opens_leg = True
        else:
            points = 0

    candidate = state.remaining_scores[active] - points

    if _is_bust(candidate, dart, double_out=config.double_out):
        restored = state.turn.start_score
        # A leg opened earlier in this turn is closed again along with the score.
        started = state.has_started_leg[active] and not any(t.opened_leg for t in state.turn.darts)
        logger.debug("bust by %s on %s, back to %d", player.player_id, dart.label, restored)
        busted = replace(
            state,
            remaining_scores=_replace_at(state.remaining_scores, active, restored),
            has_started_leg=_replace_at(state.has_started_leg, active, started),
            history=(*state.history, Throw(player.player_id, dart, points=0, bust=True)),
        )
        return ThrowOutcome(_pass_turn(config, busted), (Bust(player.player_id, restored),))

    thrown = Throw(player.player_id, dart, points=points, opened_leg=opens_leg)
    state = replace(
        state,
        remaining_scores=_replace_at(state.remaining_scores, active, candidate),
        has_started_leg=_replace_at(state.has_started_leg, active, True) if opens_leg else state.has_started_leg,
        turn=replace(state.turn, darts=(*state.turn.darts, thrown)),
        history=(*state.history, thrown),
    )

    if candidate == 0:
        return _complete_leg(config, state)
    if state.turn.dart_count >= DARTS_PER_TURN:
        return ThrowOutcome(_pass_turn(config, state))
    return ThrowOutcome(state)


def _complete_leg(config: MatchConfig, state: MatchState) -> ThrowOutcome:
    active = state.active_player_index
    player_id = config.players[active].player_id
    n = config.player_count

    legs_won = _replace_at(state.legs_won, active, state.legs_won[active] + 1)
    sets_won = state.sets_won
    current_leg = state.current_leg
    current_set = state.current_set
    notifications: list[Notification] = [
        LegWon(player_id, leg_number=current_leg, set_number=current_set, legs_won=legs_won[active])
    ]
    logger.info("leg %d of set %d won by %s", current_leg, current_set, player_id)

    if legs_won[active] >= config.legs_to_win:
        sets_won = _replace_at(sets_won, active, sets_won[active] + 1)
        notifications.append(
            SetWon(player_id, set_number=current_set, legs_won=legs_won[active], sets_won=sets_won[active])
        )
        logger.info("set %d won by %s", current_set, player_id)

        if sets_won[active] >= config.sets_to_win:
            notifications.append(MatchWon(player_id, sets_won=sets_won[active]))
            logger.info("match won by %s", player_id)
            final = replace(
                state,
                legs_won=legs_won,
                sets_won=sets_won,
                winner_index=active,
                turn=TurnState(start_score=state.remaining_scores[active]),
            )
            return ThrowOutcome(final, tuple(notifications))

        legs_won = (0,) * n
        current_set += 1
        current_leg = 1
    else:
        current_leg += 1

    # The leg starter rotates by leg number, whoever won the last leg.
    starter = (current_leg - 1) % n
    next_state = replace(
        state,
        active_player_index=starter,
        remaining_scores=(config.starting_score,) * n,
        legs_won=legs_won,
        sets_won=sets_won,
        has_started_leg=(not config.double_in,) * n,
        current_leg=current_leg,
        current_set=current_set,
        turn=TurnState(start_score=config.starting_score),
    )
    return ThrowOutcome(next_state, tuple(notifications))


def undo(state: MatchState) -> MatchState:
    """
    Take back the last dart of the open turn.

    Only the turn still in progress can be undone; once a turn has ended
    (three darts, bust, or a won leg) it is closed for good. Undo on an empty
    turn returns the state unchanged.
    """
    if not state.turn.darts:
        return state

    last = state.turn.darts[-1]
    active = state.active_player_index
    has_started = state.has_started_leg
    if last.opened_leg:
        has_started = _replace_at(has_started, active, False)

    return replace(
        state,
        remaining_scores=_replace_at(state.remaining_scores, active, state.remaining_scores[active] + last.points),
        has_started_leg=has_started,
        turn=replace(state.turn, darts=state.turn.darts[:-1]),
        history=state.history[:-1],
    )
