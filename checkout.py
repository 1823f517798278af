
# Checkout engine.
# Finds every minimal-dart finish (1-3 darts, last dart on a double or the bull 50)
# for a score between 2 and 170 and orders them by the player's preferred doubles.

import logging
from collections import defaultdict
from typing import NamedTuple, Optional

logger = logging.getLogger(__name__)

MIN_TARGET = 2
MAX_TARGET = 170
DEFAULT_TARGET = 170
DEFAULT_PREFERRED_DOUBLES = ("D20", "D16")
# Doubles offered as preference toggles
PREFERRED_DOUBLE_CHOICES = ("D20", "D16", "D12", "D10", "D8", "D6")

# Segment kinds
SINGLE = "S"
DOUBLE = "D"
TRIPLE = "T"
BULL = "BULL"
DOUBLE_BULL = "DBULL"


class Segment(NamedTuple):
    code: str
    value: int
    kind: str


class CheckoutOptions(NamedTuple):
    preferred_doubles: frozenset = frozenset(DEFAULT_PREFERRED_DOUBLES)
    show_only_preferred: bool = False


class CheckoutResult(NamedTuple):
    routes: tuple
    min_darts: Optional[int]


# All legal single-dart outcomes (62 segments)
SINGLES = tuple(Segment(f"S{i}", i, SINGLE) for i in range(1, 21)) + (Segment("BULL", 25, BULL),)
DOUBLES = tuple(Segment(f"D{i}", 2 * i, DOUBLE) for i in range(1, 21)) + (Segment("DBULL", 50, DOUBLE_BULL),)
TRIPLES = tuple(Segment(f"T{i}", 3 * i, TRIPLE) for i in range(1, 21))
ALL_SEGMENTS = SINGLES + DOUBLES + TRIPLES

FINISHING_CODES = frozenset(d.code for d in DOUBLES)


def _index_by_value(segments):
    # value -> segments with that value, kept in table order
    index = defaultdict(list)
    for seg in segments:
        index[seg.value].append(seg)
    return {value: tuple(segs) for value, segs in index.items()}


_SETUPS_BY_VALUE = _index_by_value(ALL_SEGMENTS)


def segment_label(seg: Segment) -> str:
    if seg.code == "BULL":
        return "Bull (25)"
    if seg.code == "DBULL":
        return "Double Bull (50)"
    return seg.code


def is_finishing(seg: Segment) -> bool:
    return seg.kind in (DOUBLE, DOUBLE_BULL)


def route_codes(route) -> tuple:
    return tuple(seg.code for seg in route)


def route_total(route) -> int:
    return sum(seg.value for seg in route)


def clamp_target(value: int) -> int:
    """Clamp a raw score into the checkout range [2, 170]."""
    return max(MIN_TARGET, min(MAX_TARGET, value))


def is_valid_target(target) -> bool:
    # bool is an int subclass but never a score
    if isinstance(target, bool) or not isinstance(target, int):
        return False
    return MIN_TARGET <= target <= MAX_TARGET


def parse_preferred(text) -> frozenset:
    """
    Parse a comma separated list of double codes ("D20, d16") into a frozenset of
    upper-cased codes. Empty entries are ignored; unknown codes are kept as given.
    """
    if not text:
        return frozenset()
    return frozenset(part.strip().upper() for part in text.split(",") if part.strip())


def toggle_preferred(preferred, code: str) -> frozenset:
    code = code.strip().upper()
    current = frozenset(preferred)
    if code in current:
        return current - {code}
    return current | {code}


def search_routes(target: int):
    """
    Enumerate candidate routes for `target` as three tiers (1, 2 and 3 darts).

    Finishing doubles are the outer loop, setup darts the inner loops, so the
    candidates come out in a fixed order. Nothing is deduplicated here.
    """
    one = [(d,) for d in DOUBLES if d.value == target]

    two = []
    for d in DOUBLES:
        need = target - d.value
        if need <= 0:
            continue
        for a in _SETUPS_BY_VALUE.get(need, ()):
            two.append((a, d))

    three = []
    for d in DOUBLES:
        need2 = target - d.value
        if need2 <= 0:
            continue
        for a in ALL_SEGMENTS:
            need1 = need2 - a.value
            if need1 <= 0:
                continue
            for b in _SETUPS_BY_VALUE.get(need1, ()):
                three.append((a, b, d))

    return one, two, three


def dedupe_routes(routes):
    """Drop repeated routes (same codes in the same order), keeping the first one."""
    seen = set()
    unique = []
    for route in routes:
        key = route_codes(route)
        if key in seen:
            continue
        seen.add(key)
        unique.append(route)
    return unique


def sort_routes(routes, preferred) -> list:
    # preferred finish first, then highest total, then codes "A,B,C" ascending
    def sort_key(route):
        is_preferred = route[-1].code in preferred
        return (0 if is_preferred else 1, -route_total(route), ",".join(route_codes(route)))

    return sorted(routes, key=sort_key)


def compute_checkout(target, options: Optional[CheckoutOptions] = None) -> CheckoutResult:
    """
    Return the minimal-dart checkouts for `target`.

    The dart count is taken from the first tier (1, 2 then 3 darts) that has any
    route at all. `show_only_preferred` filters that tier afterwards and never moves
    on to a larger dart count, so the result may hold no routes but still carry
    the dart count. Targets outside 2..170, or with no finish in 3 darts, give
    an empty result with `min_darts=None`.
    """
    if options is None:
        options = CheckoutOptions()
    if not is_valid_target(target):
        logger.debug("Target %r outside checkout range", target)
        return CheckoutResult((), None)

    preferred = frozenset(options.preferred_doubles or ())
    tiers = [dedupe_routes(tier) for tier in search_routes(target)]

    chosen = []
    min_darts = None
    for darts, tier in enumerate(tiers, start=1):
        if tier:
            chosen = tier
            min_darts = darts
            break
    if min_darts is None:
        logger.debug("No checkout for target %d within 3 darts", target)
        return CheckoutResult((), None)

    if options.show_only_preferred:
        chosen = [r for r in chosen if r[-1].code in preferred]

    routes = sort_routes(chosen, preferred)
    logger.debug("Target %d: %d route(s) in %d dart(s)", target, len(routes), min_darts)
    return CheckoutResult(tuple(routes), min_darts)
