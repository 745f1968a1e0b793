"""
Tests for BoardController: loading, apply-after-success mutations,
notes, and the optimistic move with reload on failure.
"""

from dataclasses import replace

import pytest

from taskboard.board_view import BoardController
from taskboard.errors import ApiError, DragInProgress, ValidationError
from taskboard.forms import CardForm, ColumnForm
from taskboard.reorder import DragLocation, DragPhase
from taskboard.schema import Card, Column, Priority


@pytest.fixture
def controller(api, board, notifier):
    api.get_board.return_value = board
    ctrl = BoardController(api, "b1", notifier)
    assert ctrl.load()
    return ctrl


def ids(board, column_id):
    return [c.id for c in board.find_column(column_id).cards]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Loading
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestLoad:

    def test_load_sets_board_and_notes(self, controller, board):
        assert controller.board is board
        assert controller.notes == "remember the demo"
        assert not controller.is_blocked

    def test_load_failure_sets_error(self, api, notifier):
        api.get_board.side_effect = ApiError(None, status=500)
        ctrl = BoardController(api, "b1", notifier)
        assert not ctrl.load()
        assert ctrl.error == "Failed to fetch board"
        assert ctrl.is_blocked
        assert not ctrl.loading

    def test_load_failure_uses_server_message(self, api, notifier):
        api.get_board.side_effect = ApiError("Board not found", status=404)
        ctrl = BoardController(api, "b1", notifier)
        ctrl.load()
        assert ctrl.error == "Board not found"

    def test_mutation_before_load_raises(self, api, notifier):
        ctrl = BoardController(api, "b1", notifier)
        with pytest.raises(ValidationError, match="not loaded"):
            ctrl.delete_card("a")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Columns and cards
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestColumns:

    def test_add_column_appends(self, controller, api, notifier):
        api.create_column.return_value = Column(id="qa", title="QA", position=3)
        column = controller.add_column(ColumnForm(title="QA", limit=2))
        assert column.id == "qa"
        assert [c.id for c in controller.board.columns][-1] == "qa"
        api.create_column.assert_called_once_with(
            "b1", {"title": "QA", "color": "#007bff", "limit": 2}
        )
        assert notifier.last.description == "Column added successfully"

    def test_add_column_invalid_form_no_request(self, controller, api):
        with pytest.raises(ValidationError):
            controller.add_column(ColumnForm(title=""))
        api.create_column.assert_not_called()

    def test_add_column_failure_leaves_state(self, controller, api, notifier, board):
        api.create_column.side_effect = ApiError(None, status=500)
        assert controller.add_column(ColumnForm(title="QA")) is None
        assert controller.board is board
        assert notifier.last.is_error
        assert notifier.last.description == "Failed to add column"

    def test_delete_column(self, controller, api):
        assert controller.delete_column("done")
        assert [c.id for c in controller.board.columns] == ["todo", "doing"]


class TestCards:

    def test_add_card(self, controller, api):
        api.create_card.return_value = Card(id="n", title="New", position=3)
        controller.add_card("todo", CardForm(title="New", priority="high"))
        assert ids(controller.board, "todo") == ["a", "b", "c", "n"]
        api.create_card.assert_called_once_with(
            "todo", {"title": "New", "description": "", "priority": "high"}
        )

    def test_add_card_unknown_column(self, controller, api):
        with pytest.raises(ValidationError, match="Unknown column"):
            controller.add_card("nope", CardForm(title="x"))
        api.create_card.assert_not_called()

    def test_edit_card_applies_after_success(self, controller, api):
        form = controller.card_form("b")
        form.title = "Renamed"
        form.priority = "urgent"
        form.due_date = "2024-07-01"
        assert controller.edit_card("b", form)
        card = controller.board.find_card("b")
        assert card.title == "Renamed"
        assert card.priority == Priority.URGENT
        assert card.due_date.date().isoformat() == "2024-07-01"

    def test_edit_card_clears_due_date(self, controller, api):
        form = controller.card_form("b")
        form.due_date = "2026-01-05"
        controller.edit_card("b", form)
        assert controller.board.find_card("b").due_date is not None

        form = controller.card_form("b")
        form.due_date = ""
        assert controller.edit_card("b", form)
        assert api.update_card.call_args.args[1]["dueDate"] is None
        assert controller.board.find_card("b").due_date is None

    def test_edit_card_failure_keeps_card(self, controller, api, notifier):
        api.update_card.side_effect = ApiError("Card not found", status=404)
        form = controller.card_form("b")
        form.title = "Renamed"
        assert not controller.edit_card("b", form)
        assert controller.board.find_card("b").title == "Card b"
        assert notifier.last.description == "Card not found"

    def test_delete_card(self, controller, api):
        assert controller.delete_card("b")
        assert ids(controller.board, "todo") == ["a", "c"]
        api.delete_card.assert_called_once_with("b")

    def test_delete_card_failure(self, controller, api, notifier):
        api.delete_card.side_effect = ApiError(None)
        assert not controller.delete_card("b")
        assert ids(controller.board, "todo") == ["a", "b", "c"]
        assert notifier.last.description == "Failed to delete card"


class TestNotes:

    def test_save_notes(self, controller, api, notifier):
        controller.start_editing_notes()
        assert controller.save_notes("ship it")
        api.update_board.assert_called_once_with("b1", {"notes": "ship it"})
        assert controller.board.notes == "ship it"
        assert not controller.editing_notes
        assert notifier.last.description == "Notes saved successfully"

    def test_cancel_restores_buffer(self, controller):
        controller.start_editing_notes()
        controller.notes = "draft"
        controller.cancel_editing_notes()
        assert controller.notes == "remember the demo"

    def test_save_failure_keeps_old_notes(self, controller, api):
        api.update_board.side_effect = ApiError(None)
        assert not controller.save_notes("ship it")
        assert controller.board.notes == "remember the demo"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Drag and drop
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestDragAndDrop:

    def test_successful_move(self, controller, api):
        controller.begin_drag("b", DragLocation("todo", 1))
        assert controller.drop(DragLocation("doing", 0))
        assert ids(controller.board, "todo") == ["a", "c"]
        assert ids(controller.board, "doing") == ["b", "d"]
        api.move_card.assert_called_once_with("b", "doing", 0)
        assert controller.gesture.phase == DragPhase.IDLE
        assert api.get_board.call_count == 1

    def test_optimistic_state_visible_during_sync(self, controller, api):
        seen = {}

        def capture(card_id, column_id, position):
            seen["todo"] = ids(controller.board, "todo")
            seen["phase"] = controller.gesture.phase

        api.move_card.side_effect = capture
        controller.move("a", "todo", 2)
        assert seen["todo"] == ["b", "c", "a"]
        assert seen["phase"] == DragPhase.OPTIMISTIC_APPLIED

    def test_failure_reloads_exactly_once(self, controller, api, notifier, make_board):
        server_board = make_board()
        server_board = replace(
            server_board,
            columns=[replace(c, title=f"{c.title} (server)") for c in server_board.columns],
        )
        api.get_board.reset_mock()
        api.get_board.return_value = server_board
        api.move_card.side_effect = ApiError("Card not found", status=404)

        assert not controller.move("b", "doing", 0)
        assert api.get_board.call_count == 1
        assert controller.board is server_board
        assert notifier.last.description == "Failed to move card"
        assert controller.gesture.phase == DragPhase.IDLE
        phases = [h.to_phase for h in controller.gesture.history]
        assert DragPhase.RELOADING in phases

    def test_failed_reload_sets_error(self, controller, api):
        api.move_card.side_effect = ApiError(None)
        api.get_board.side_effect = ApiError(None)
        controller.move("b", "doing", 0)
        assert controller.error == "Failed to fetch board"
        assert controller.gesture.phase == DragPhase.IDLE

    def test_unexpected_reload_error_still_ends_gesture(self, controller, api):
        api.move_card.side_effect = ApiError(None)
        api.get_board.side_effect = AttributeError("'NoneType' object has no attribute 'get'")
        with pytest.raises(AttributeError):
            controller.move("b", "doing", 0)
        assert controller.gesture.phase == DragPhase.IDLE
        controller.begin_drag("a", DragLocation("todo", 0))
        assert controller.gesture.phase == DragPhase.DRAGGING

    def test_unexpected_sync_error_still_ends_gesture(self, controller, api):
        api.move_card.side_effect = RuntimeError("socket closed")
        with pytest.raises(RuntimeError):
            controller.move("b", "doing", 0)
        assert not controller.gesture.in_flight
        api.move_card.side_effect = None
        assert controller.move("a", "done", 0)

    def test_drop_outside_columns(self, controller, api, board):
        controller.begin_drag("a", DragLocation("todo", 0))
        assert not controller.drop(None)
        assert controller.board is board
        api.move_card.assert_not_called()
        assert controller.gesture.phase == DragPhase.IDLE

    def test_drop_on_same_slot(self, controller, api, board):
        assert not controller.move("b", "todo", 1)
        assert controller.board is board
        api.move_card.assert_not_called()

    def test_second_drag_rejected(self, controller):
        controller.begin_drag("a", DragLocation("todo", 0))
        with pytest.raises(DragInProgress):
            controller.begin_drag("b", DragLocation("todo", 1))

    def test_cancel_drag(self, controller):
        controller.begin_drag("a", DragLocation("todo", 0))
        controller.cancel_drag()
        assert not controller.gesture.in_flight

    def test_move_unknown_card(self, controller):
        with pytest.raises(ValidationError, match="Unknown card"):
            controller.move("zzz", "doing", 0)

    def test_drop_without_drag(self, controller, api):
        assert not controller.drop(DragLocation("doing", 0))
        api.move_card.assert_not_called()
