from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from dartmatch.scoring.game import DARTS_PER_TURN, INNER_BULL, Dart

MAX_OPTIONS = 5
MAX_TWO_DART_FINISH = 110
MAX_THREE_DART_FINISH = 170


@dataclass(frozen=True)
class FinishOption:
    """
    A sequence of 1-3 darts that checks out from a given remaining score.
    """

    darts: tuple[Dart, ...]

    @property
    def label(self) -> str:
        return "→".join(d.label for d in self.darts)

    @property
    def total(self) -> int:
        return sum(d.score for d in self.darts)

    def as_strings(self) -> list[str]:
        return [d.label for d in self.darts]


# Three-dart finishes are a short list of the classic big checkouts, not a search.
THREE_DART_FINISHES: dict[int, tuple[Dart, ...]] = {
    170: (Dart(20, 3), Dart(20, 3), Dart(INNER_BULL)),
    167: (Dart(20, 3), Dart(19, 3), Dart(INNER_BULL)),
    160: (Dart(20, 3), Dart(20, 3), Dart(20, 2)),
}


def _finishing_dart(remaining: int) -> Dart | None:
    """
    The double (or inner bull) that takes out `remaining` in one dart, if any.
    """
    if remaining == INNER_BULL:
        return Dart(INNER_BULL)
    if 2 <= remaining <= 40 and remaining % 2 == 0:
        return Dart(remaining // 2, 2)
    return None


def _one_dart_routes(remaining: int, *, double_out: bool) -> list[tuple[Dart, ...]]:
    routes: list[tuple[Dart, ...]] = []
    if remaining <= 40 and remaining % 2 == 0:
        routes.append((Dart(remaining // 2, 2),))
    if remaining == INNER_BULL:
        routes.append((Dart(INNER_BULL),))
    if not double_out:
        if remaining <= 20:
            routes.append((Dart(remaining, 1),))
        if remaining <= 60 and remaining % 3 == 0:
            routes.append((Dart(remaining // 3, 3),))
    return routes


def _two_dart_routes(remaining: int) -> list[tuple[Dart, ...]]:
    # The last dart of a two-dart route is always a double or the bull,
    # whatever the double-out setting.
    routes: list[tuple[Dart, ...]] = []
    for value in range(1, 21):
        for multiplier in (1, 2, 3):
            first = Dart(value, multiplier)
            if first.score >= remaining:
                continue
            finish = _finishing_dart(remaining - first.score)
            if finish is not None:
                routes.append((first, finish))
    return routes


@lru_cache(maxsize=4096)
def _search(remaining: int, double_out: bool, darts_remaining: int) -> tuple[FinishOption, ...]:
    routes: list[tuple[Dart, ...]] = []

    routes.extend(_one_dart_routes(remaining, double_out=double_out))

    if darts_remaining >= 2 and remaining <= MAX_TWO_DART_FINISH:
        routes.extend(_two_dart_routes(remaining))

    if darts_remaining >= 3 and MAX_TWO_DART_FINISH < remaining <= MAX_THREE_DART_FINISH:
        fixed = THREE_DART_FINISHES.get(remaining)
        if fixed is not None:
            routes.append(fixed)

    seen: set[str] = set()
    options: list[FinishOption] = []
    for route in routes:
        option = FinishOption(darts=route)
        if option.label in seen:
            continue
        seen.add(option.label)
        options.append(option)

    # Stable sort: fewer darts first, search order within the same length.
    options.sort(key=lambda o: len(o.darts))
    return tuple(options[:MAX_OPTIONS])


def compute_finishes(remaining: int, double_out: bool = True, darts_remaining: int = DARTS_PER_TURN) -> list[FinishOption]:
    """
    Return up to five ways to check out from `remaining` with the darts left
    in the turn, fewest darts first. The first option is the one to suggest.

    Notes:
    - 1 and anything below 1 can never be finished.
    - Without double-out a single or treble may finish in one dart, but the
      last dart of a longer route is still a double or the bull.
    - Above 110 only the classic 170, 167 and 160 finishes are offered.
    """
    if remaining <= 0 or remaining == 1 or darts_remaining <= 0:
        return []
    if darts_remaining > DARTS_PER_TURN:
        raise ValueError("darts_remaining must be between 0 and 3")
    return list(_search(remaining, double_out, darts_remaining))
