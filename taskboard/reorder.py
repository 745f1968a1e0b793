"""
Card reordering and the drag gesture state machine.

Gesture lifecycle:
  Idle → Dragging → Dropped-Valid → Optimistic-Applied → Idle
                                                       → Reloading → Idle
                  → Dropped-Invalid → Idle

`move_card` is pure: it never touches the network and never mutates the
board it is given. Untouched columns are returned as the very same objects,
so callers can detect changes with `is`.
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any

from .errors import DragInProgress
from .schema import Board, Card, Column

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DragLocation:
    """A slot in a column: column id plus zero-based index."""
    column_id: str
    index: int


def is_same_slot(source: DragLocation, destination: Optional[DragLocation]) -> bool:
    return (
        destination is not None
        and source.column_id == destination.column_id
        and source.index == destination.index
    )


def _renumber(cards: List[Card]) -> List[Card]:
    """Give every card its list index as `position`, copying only those that change."""
    return [
        card if card.position == i else replace(card, position=i)
        for i, card in enumerate(cards)
    ]


def move_card(
    board: Board,
    source: DragLocation,
    destination: Optional[DragLocation],
    card_id: Optional[str] = None,
) -> Board:
    """
    Return a new board with one card moved from `source` to `destination`.

    The destination index is relative to the list with the moved card
    already removed (list splice semantics). Any drop that cannot be
    applied returns `board` itself unchanged.
    """
    if destination is None or is_same_slot(source, destination):
        return board

    source_column = board.find_column(source.column_id)
    dest_column = board.find_column(destination.column_id)
    if source_column is None or dest_column is None:
        return board

    if not 0 <= source.index < len(source_column.cards) or destination.index < 0:
        return board

    moved = source_column.cards[source.index]
    if card_id is not None and moved.id != card_id:
        logger.warning(
            f"Stale drop: expected card {card_id} at "
            f"{source.column_id}[{source.index}], found {moved.id}"
        )
        return board

    replaced: Dict[str, Column] = {}
    source_cards = list(source_column.cards)
    source_cards.pop(source.index)

    if source_column.id == dest_column.id:
        source_cards.insert(destination.index, moved)
        replaced[source_column.id] = replace(source_column, cards=_renumber(source_cards))
    else:
        dest_cards = list(dest_column.cards)
        dest_cards.insert(destination.index, moved)
        replaced[source_column.id] = replace(source_column, cards=_renumber(source_cards))
        replaced[dest_column.id] = replace(dest_column, cards=_renumber(dest_cards))

    columns = [replaced.get(column.id, column) for column in board.columns]
    return replace(board, columns=columns)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Drag gesture state machine
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class DragPhase(Enum):
    """Phases of a single drag gesture."""
    IDLE = "idle"
    DRAGGING = "dragging"
    DROPPED_VALID = "dropped_valid"
    DROPPED_INVALID = "dropped_invalid"
    OPTIMISTIC_APPLIED = "optimistic_applied"   # local state changed, sync pending
    RELOADING = "reloading"                     # sync failed, refetching the board


ALLOWED_NEXT = {
    DragPhase.IDLE: [DragPhase.DRAGGING],
    DragPhase.DRAGGING: [DragPhase.DROPPED_VALID, DragPhase.DROPPED_INVALID],
    DragPhase.DROPPED_VALID: [DragPhase.OPTIMISTIC_APPLIED],
    DragPhase.DROPPED_INVALID: [DragPhase.IDLE],
    DragPhase.OPTIMISTIC_APPLIED: [DragPhase.IDLE, DragPhase.RELOADING],
    DragPhase.RELOADING: [DragPhase.IDLE],
}


@dataclass
class PhaseChange:
    from_phase: DragPhase
    to_phase: DragPhase
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_phase.value,
            "to": self.to_phase.value,
            "timestamp": self.timestamp,
        }


@dataclass
class DragGesture:
    """Tracks the one drag gesture a board view may have in flight."""

    phase: DragPhase = DragPhase.IDLE
    card_id: Optional[str] = None
    source: Optional[DragLocation] = None
    history: List[PhaseChange] = field(default_factory=list)

    @property
    def in_flight(self) -> bool:
        return self.phase != DragPhase.IDLE

    def transition_to(self, new_phase: DragPhase) -> bool:
        """Attempt a phase transition. Returns True if it was allowed."""
        if new_phase not in ALLOWED_NEXT.get(self.phase, []):
            return False
        self.history.append(PhaseChange(self.phase, new_phase))
        self.phase = new_phase
        if new_phase == DragPhase.IDLE:
            self.card_id = None
            self.source = None
        return True

    def start(self, card_id: str, source: DragLocation) -> None:
        """Begin dragging a card. Only one gesture may be in flight."""
        if self.in_flight:
            raise DragInProgress(
                f"Cannot drag {card_id}: gesture for {self.card_id} "
                f"is still {self.phase.value}"
            )
        self.history = []
        self.transition_to(DragPhase.DRAGGING)
        self.card_id = card_id
        self.source = source
