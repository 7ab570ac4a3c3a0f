import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from dartmatch.config import LOG_LEVEL
from dartmatch.scoring.checkout import FinishOption, compute_finishes
from dartmatch.scoring.errors import InvalidConfig, InvalidThrow, MatchFinished, NoMatchInProgress
from dartmatch.scoring.game import (
    Bust,
    LegWon,
    MatchConfig,
    MatchState,
    MatchWon,
    Notification,
    Player,
    SetWon,
    Throw,
)
from dartmatch.scoring.store import get_session

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Dartmatch")
session = get_session()


@app.get("/", include_in_schema=False)
def root(request: Request):
    # If a browser hits the root, take them to Swagger UI.
    # Keep the JSON response for API clients (e.g. curl, fetch).
    accept = (request.headers.get("accept") or "").lower()
    if "text/html" in accept:
        return RedirectResponse(url="/docs")
    return {
        "name": "Dartmatch",
        "docs": "/docs",
        "health": "/health",
        "endpoints": [
            "GET /settings/last",
            "POST /match",
            "GET /match",
            "POST /match/throw",
            "POST /match/undo",
            "DELETE /match",
            "GET /match/finishes?remaining=<int>&darts_remaining=<int>",
        ],
    }


@app.get("/health")
def health():
    return {"status": "ok"}


class PlayerDTO(BaseModel):
    id: str = Field(..., min_length=1)
    name: str


class SettingsDTO(BaseModel):
    players: list[PlayerDTO] = Field(..., min_length=1)
    starting_score: int = Field(default=501, gt=1)
    legs: int = Field(default=1, gt=0, description="Best of N legs per set")
    sets: int = Field(default=1, gt=0, description="Best of N sets per match")
    double_in: bool = Field(default=False)
    double_out: bool = Field(default=True)


class ThrowRequest(BaseModel):
    value: int = Field(..., description="0=miss, 1-20, 25=outer bull, 50=inner bull")
    multiplier: int = Field(default=1, description="1=single, 2=double, 3=triple")


class DartDTO(BaseModel):
    value: int
    multiplier: int
    label: str


class ThrowDTO(BaseModel):
    player_id: str
    dart: DartDTO
    points: int
    bust: bool
    opened_leg: bool


class TurnDTO(BaseModel):
    start_score: int
    dart_count: int
    darts_left: int
    darts: list[ThrowDTO]
    scores: list[int]


class PlayerStateDTO(BaseModel):
    id: str
    name: str
    remaining: int
    legs_won: int
    sets_won: int
    has_started_leg: bool


class MatchStateDTO(BaseModel):
    settings: SettingsDTO
    players: list[PlayerStateDTO]
    active_player_index: int
    current_leg: int
    current_set: int
    legs_to_win: int
    sets_to_win: int
    turn: TurnDTO
    winner_player_id: str | None
    history: list[ThrowDTO]


class NotificationDTO(BaseModel):
    kind: str
    player_id: str
    restored_score: int | None = None
    leg_number: int | None = None
    set_number: int | None = None
    legs_won: int | None = None
    sets_won: int | None = None


class ThrowResponseDTO(BaseModel):
    state: MatchStateDTO
    notifications: list[NotificationDTO]


class FinishOptionDTO(BaseModel):
    label: str
    darts: list[DartDTO]
    total: int


class FinishesResponseDTO(BaseModel):
    remaining: int
    double_out: bool
    darts_remaining: int
    options: list[FinishOptionDTO]


def _settings_to_dto(c: MatchConfig) -> SettingsDTO:
    return SettingsDTO(
        players=[PlayerDTO(id=p.player_id, name=p.name) for p in c.players],
        starting_score=c.starting_score,
        legs=c.legs,
        sets=c.sets,
        double_in=c.double_in,
        double_out=c.double_out,
    )


def _dto_to_settings(req: SettingsDTO) -> MatchConfig:
    return MatchConfig(
        players=tuple(Player(player_id=p.id, name=p.name) for p in req.players),
        starting_score=req.starting_score,
        legs=req.legs,
        sets=req.sets,
        double_in=req.double_in,
        double_out=req.double_out,
    )


def _throw_to_dto(t: Throw) -> ThrowDTO:
    return ThrowDTO(
        player_id=t.player_id,
        dart=DartDTO(value=t.dart.value, multiplier=t.dart.multiplier, label=t.dart.label),
        points=t.points,
        bust=t.bust,
        opened_leg=t.opened_leg,
    )


def _state_to_dto(c: MatchConfig, s: MatchState) -> MatchStateDTO:
    return MatchStateDTO(
        settings=_settings_to_dto(c),
        players=[
            PlayerStateDTO(
                id=p.player_id,
                name=p.name,
                remaining=s.remaining_scores[i],
                legs_won=s.legs_won[i],
                sets_won=s.sets_won[i],
                has_started_leg=s.has_started_leg[i],
            )
            for i, p in enumerate(c.players)
        ],
        active_player_index=s.active_player_index,
        current_leg=s.current_leg,
        current_set=s.current_set,
        legs_to_win=c.legs_to_win,
        sets_to_win=c.sets_to_win,
        turn=TurnDTO(
            start_score=s.turn.start_score,
            dart_count=s.turn.dart_count,
            darts_left=s.darts_left,
            darts=[_throw_to_dto(t) for t in s.turn.darts],
            scores=list(s.turn_scores),
        ),
        winner_player_id=c.players[s.winner_index].player_id if s.winner_index is not None else None,
        history=[_throw_to_dto(t) for t in s.history],
    )


def _notification_to_dto(n: Notification) -> NotificationDTO:
    dto = NotificationDTO(kind=n.kind, player_id=n.player_id)
    if isinstance(n, Bust):
        dto.restored_score = n.restored_score
    elif isinstance(n, LegWon):
        dto.leg_number = n.leg_number
        dto.set_number = n.set_number
        dto.legs_won = n.legs_won
    elif isinstance(n, SetWon):
        dto.set_number = n.set_number
        dto.legs_won = n.legs_won
        dto.sets_won = n.sets_won
    elif isinstance(n, MatchWon):
        dto.sets_won = n.sets_won
    return dto


def _finish_to_dto(o: FinishOption) -> FinishOptionDTO:
    return FinishOptionDTO(
        label=o.label,
        darts=[DartDTO(value=d.value, multiplier=d.multiplier, label=d.label) for d in o.darts],
        total=o.total,
    )


def _current_match_dto() -> MatchStateDTO:
    try:
        return _state_to_dto(session.config(), session.state())
    except NoMatchInProgress as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@app.get("/settings/last", response_model=SettingsDTO)
def last_settings() -> SettingsDTO:
    config = session.last_config()
    if config is None:
        raise HTTPException(status_code=404, detail="no saved settings")
    return _settings_to_dto(config)


@app.post("/match", response_model=MatchStateDTO)
def start_match(req: SettingsDTO) -> MatchStateDTO:
    try:
        config = _dto_to_settings(req)
    except InvalidConfig as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    state = session.start(config)
    return _state_to_dto(config, state)


@app.get("/match", response_model=MatchStateDTO)
def get_match() -> MatchStateDTO:
    return _current_match_dto()


@app.post("/match/throw", response_model=ThrowResponseDTO)
def record_throw(req: ThrowRequest) -> ThrowResponseDTO:
    try:
        outcome = session.record_throw(req.value, req.multiplier)
    except InvalidThrow as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except MatchFinished as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except NoMatchInProgress as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    for n in outcome.notifications:
        logger.debug("notification %s for %s", n.kind, n.player_id)
    return ThrowResponseDTO(
        state=_state_to_dto(session.config(), outcome.state),
        notifications=[_notification_to_dto(n) for n in outcome.notifications],
    )


@app.post("/match/undo", response_model=MatchStateDTO)
def undo_last_dart() -> MatchStateDTO:
    try:
        session.undo()
    except NoMatchInProgress as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return _current_match_dto()


@app.delete("/match")
def end_match():
    session.end_match()
    return {"status": "ended"}


# Finish hint for the player at the board; every parameter can be overridden.
@app.get("/match/finishes", response_model=FinishesResponseDTO)
def finish_options(
    remaining: int | None = None,
    darts_remaining: int | None = None,
    double_out: bool | None = None,
) -> FinishesResponseDTO:
    if remaining is None or darts_remaining is None or double_out is None:
        try:
            config, state = session.config(), session.state()
        except NoMatchInProgress as e:
            raise HTTPException(
                status_code=404, detail="remaining, darts_remaining and double_out are required without a match"
            ) from e
        if remaining is None:
            remaining = state.active_remaining
        if darts_remaining is None:
            darts_remaining = state.darts_left
        if double_out is None:
            double_out = config.double_out

    try:
        options = compute_finishes(remaining, double_out, darts_remaining)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return FinishesResponseDTO(
        remaining=remaining,
        double_out=double_out,
        darts_remaining=darts_remaining,
        options=[_finish_to_dto(o) for o in options],
    )
