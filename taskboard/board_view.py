"""
Board page controller.

Holds the aggregate for one board and performs every mutation the board
page offers. Two update strategies:

  create / edit / delete  → call the backend, then apply locally on success
  move                    → apply locally first, then call the backend;
                            on failure refetch the whole board

Failures never raise out of these methods: a failed load sets `error`,
a failed mutation emits an error notification.
"""
import logging
from dataclasses import replace
from typing import Optional

from .api import ApiClient
from .errors import ApiError, ValidationError
from .forms import CardForm, ColumnForm
from .notifications import Notifier
from .reorder import DragGesture, DragLocation, DragPhase, move_card
from .schema import Board, Card, Column, Priority, parse_timestamp

logger = logging.getLogger(__name__)


class BoardController:
    """Owns one board aggregate; discard the controller to discard the aggregate."""

    def __init__(self, api: ApiClient, board_id: str, notifier: Optional[Notifier] = None):
        self.api = api
        self.board_id = board_id
        self.notifier = notifier or Notifier()
        self.board: Optional[Board] = None
        self.error = ""
        self.loading = False
        self.gesture = DragGesture()

        # Notes edit buffer mirrors board.notes until saved
        self.notes = ""
        self.editing_notes = False

    # ──────────────────────────────────────────
    # Loading
    # ──────────────────────────────────────────

    def load(self) -> bool:
        """Fetch the whole board. On failure `error` holds the message."""
        self.loading = True
        try:
            board = self.api.get_board(self.board_id)
        except ApiError as e:
            self.error = e.describe("Failed to fetch board")
            logger.warning(f"Board {self.board_id} load failed: {self.error}")
            return False
        finally:
            self.loading = False
        self._set_board(board)
        self.error = ""
        return True

    def _set_board(self, board: Board) -> None:
        self.board = board
        self.notes = board.notes or ""

    @property
    def is_blocked(self) -> bool:
        """True while the view cannot be interacted with."""
        return self.loading or bool(self.error) or self.board is None

    def _require_board(self) -> Board:
        if self.board is None:
            raise ValidationError("Board is not loaded")
        return self.board

    def _replace_columns(self, columns) -> None:
        self.board = replace(self._require_board(), columns=list(columns))

    # ──────────────────────────────────────────
    # Columns
    # ──────────────────────────────────────────

    def add_column(self, form: ColumnForm) -> Optional[Column]:
        board = self._require_board()
        form.validate()
        try:
            column = self.api.create_column(self.board_id, form.to_payload())
        except ApiError as e:
            self.notifier.error(e.describe("Failed to add column"))
            return None
        column = replace(column, cards=[])
        self._replace_columns(board.columns + [column])
        logger.info(f"Column {column.id} added to board {self.board_id}")
        self.notifier.success("Column added successfully")
        return column

    def delete_column(self, column_id: str) -> bool:
        board = self._require_board()
        try:
            self.api.delete_column(column_id)
        except ApiError as e:
            self.notifier.error(e.describe("Failed to delete column"))
            return False
        self._replace_columns(c for c in board.columns if c.id != column_id)
        logger.info(f"Column {column_id} deleted")
        self.notifier.success("Column deleted successfully")
        return True

    # ──────────────────────────────────────────
    # Cards
    # ──────────────────────────────────────────

    def add_card(self, column_id: str, form: CardForm) -> Optional[Card]:
        board = self._require_board()
        if board.find_column(column_id) is None:
            raise ValidationError(f"Unknown column: {column_id}")
        form.validate()
        try:
            card = self.api.create_card(column_id, form.to_payload())
        except ApiError as e:
            self.notifier.error(e.describe("Failed to add card"))
            return None
        self._replace_columns(
            replace(c, cards=c.cards + [card]) if c.id == column_id else c
            for c in board.columns
        )
        logger.info(f"Card {card.id} added to column {column_id}")
        self.notifier.success("Card added successfully")
        return card

    def card_form(self, card_id: str) -> CardForm:
        """Edit form pre-filled from the current card."""
        card = self._require_board().find_card(card_id)
        if card is None:
            raise ValidationError(f"Unknown card: {card_id}")
        return CardForm.from_card(card)

    def edit_card(self, card_id: str, form: CardForm) -> bool:
        board = self._require_board()
        if board.find_card(card_id) is None:
            raise ValidationError(f"Unknown card: {card_id}")
        form.validate()
        payload = form.to_update_payload()
        try:
            self.api.update_card(card_id, payload)
        except ApiError as e:
            self.notifier.error(e.describe("Failed to update card"))
            return False

        def apply(card: Card) -> Card:
            return replace(
                card,
                title=payload["title"],
                description=payload["description"],
                priority=Priority.from_str(form.priority_value),
                due_date=parse_timestamp(payload["dueDate"]),
            )

        self._replace_columns(
            replace(c, cards=[apply(k) if k.id == card_id else k for k in c.cards])
            if c.index_of(card_id) >= 0 else c
            for c in board.columns
        )
        logger.info(f"Card {card_id} updated")
        self.notifier.success("Card updated successfully")
        return True

    def delete_card(self, card_id: str) -> bool:
        board = self._require_board()
        try:
            self.api.delete_card(card_id)
        except ApiError as e:
            self.notifier.error(e.describe("Failed to delete card"))
            return False
        self._replace_columns(
            replace(c, cards=[k for k in c.cards if k.id != card_id])
            if c.index_of(card_id) >= 0 else c
            for c in board.columns
        )
        logger.info(f"Card {card_id} deleted")
        self.notifier.success("Card deleted successfully")
        return True

    # ──────────────────────────────────────────
    # Notes
    # ──────────────────────────────────────────

    def start_editing_notes(self) -> str:
        self.editing_notes = True
        self.notes = self._require_board().notes or ""
        return self.notes

    def cancel_editing_notes(self) -> None:
        self.editing_notes = False
        self.notes = self._require_board().notes or ""

    def save_notes(self, text: Optional[str] = None) -> bool:
        """Save the edit buffer (or `text`) as the board notes."""
        board = self._require_board()
        if text is not None:
            self.notes = text
        try:
            self.api.update_board(self.board_id, {"notes": self.notes})
        except ApiError as e:
            self.notifier.error(e.describe("Failed to save notes"))
            return False
        self.board = replace(board, notes=self.notes)
        self.editing_notes = False
        self.notifier.success("Notes saved successfully")
        return True

    # ──────────────────────────────────────────
    # Drag and drop
    # ──────────────────────────────────────────

    def begin_drag(self, card_id: str, source: DragLocation) -> None:
        """Start a gesture. Raises DragInProgress if one is already in flight."""
        self._require_board()
        self.gesture.start(card_id, source)

    def drop(self, destination: Optional[DragLocation]) -> bool:
        """
        Finish the current gesture.

        Returns True if the move was applied and confirmed by the backend.
        A drop outside any column, onto its own slot, or onto an unknown
        column ends the gesture without touching state or the network.
        """
        board = self._require_board()
        card_id, source = self.gesture.card_id, self.gesture.source
        if self.gesture.phase != DragPhase.DRAGGING or source is None:
            logger.warning("drop() called with no drag in progress")
            return False

        moved = move_card(board, source, destination, card_id=card_id)
        if moved is board:
            self.gesture.transition_to(DragPhase.DROPPED_INVALID)
            self.gesture.transition_to(DragPhase.IDLE)
            return False

        self.gesture.transition_to(DragPhase.DROPPED_VALID)
        self.board = moved
        self.gesture.transition_to(DragPhase.OPTIMISTIC_APPLIED)

        # Whatever happens below, the gesture ends in IDLE
        try:
            self.api.move_card(card_id, destination.column_id, destination.index)
        except ApiError as e:
            logger.warning(f"Move of card {card_id} failed ({e}); reloading board")
            self.notifier.error("Failed to move card")
            self.gesture.transition_to(DragPhase.RELOADING)
            self.load()
            return False
        finally:
            self.gesture.transition_to(DragPhase.IDLE)

        logger.info(
            f"Card {card_id} moved {source.column_id}[{source.index}] -> "
            f"{destination.column_id}[{destination.index}]"
        )
        return True

    def cancel_drag(self) -> None:
        """Abort a gesture that has not been dropped yet."""
        if self.gesture.phase == DragPhase.DRAGGING:
            self.gesture.transition_to(DragPhase.DROPPED_INVALID)
            self.gesture.transition_to(DragPhase.IDLE)

    def move(self, card_id: str, column_id: str, index: int) -> bool:
        """Move a card by id to `column_id[index]` as a single gesture."""
        board = self._require_board()
        column = board.column_of(card_id)
        if column is None:
            raise ValidationError(f"Unknown card: {card_id}")
        self.begin_drag(card_id, DragLocation(column.id, column.index_of(card_id)))
        return self.drop(DragLocation(column_id, index))
