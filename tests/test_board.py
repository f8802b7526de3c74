from typing import List

import pytest
from hypothesis import given, strategies as st

from tictactoe_qlearning import (
    EMPTY_BOARD,
    NUM_STATES,
    WIN_LINES,
    BoardState,
    Player,
    available_moves,
    check_win,
)


def _board_from_letters(letters: List[str]) -> BoardState:
    mapping = {"A": Player.X, "B": Player.O, "": Player.EMPTY}
    return BoardState.from_cells([mapping[c] for c in letters])


@pytest.mark.parametrize("line", WIN_LINES)
@pytest.mark.parametrize("marker", [Player.X, Player.O])
def test_full_line_wins_only_for_its_marker(line, marker):
    cells = [Player.EMPTY] * 9
    for i in line:
        cells[i] = marker
    board = BoardState.from_cells(cells)
    assert check_win(board, marker)
    assert not check_win(board, marker.opponent())


@pytest.mark.parametrize("line", WIN_LINES)
def test_mixed_or_partial_line_does_not_win(line):
    a, b, c = line
    cells = [Player.EMPTY] * 9
    cells[a] = Player.X
    cells[b] = Player.O
    cells[c] = Player.X
    mixed = BoardState.from_cells(cells)
    assert not check_win(mixed, Player.X)
    assert not check_win(mixed, Player.O)

    cells = [Player.EMPTY] * 9
    cells[a] = Player.X
    cells[b] = Player.X
    partial = BoardState.from_cells(cells)
    assert not check_win(partial, Player.X)


def test_empty_board_has_no_winner():
    for marker in Player:
        assert not check_win(EMPTY_BOARD, marker)


@given(st.lists(st.integers(min_value=0, max_value=2), min_size=9, max_size=9),
       st.sampled_from([Player.X, Player.O]))
def test_check_win_matches_line_definition(cells: List[int], marker: Player):
    board = BoardState(tuple(cells))
    expected = any(all(cells[i] == marker.value for i in line) for line in WIN_LINES)
    assert check_win(board, marker) is expected


def test_fixed_full_board_is_not_a_win():
    board = _board_from_letters(["A", "B", "A", "A", "B", "B", "B", "A", "A"])
    assert board.is_full()
    assert available_moves(board) == []
    assert not check_win(board, Player.X)
    assert not check_win(board, Player.O)


def test_keys_are_packed_base3():
    assert EMPTY_BOARD.key == 0
    assert EMPTY_BOARD.place(0, Player.X).key == 1
    assert EMPTY_BOARD.place(1, Player.O).key == 2 * 3
    full_o = BoardState((2,) * 9)
    assert full_o.key == NUM_STATES - 1


@given(st.integers(min_value=0, max_value=NUM_STATES - 1))
def test_from_key_inverts_key(key: int):
    assert BoardState.from_key(key).key == key


def test_place_returns_new_board_and_rejects_occupied():
    board = EMPTY_BOARD.place(4, Player.X)
    assert EMPTY_BOARD.cells[4] == 0
    assert board.cells[4] == Player.X.value
    with pytest.raises(ValueError):
        board.place(4, Player.O)


def test_available_moves_lists_empty_cells_in_order():
    board = EMPTY_BOARD.place(0, Player.X).place(5, Player.O)
    assert available_moves(board) == [1, 2, 3, 4, 6, 7, 8]


def test_invalid_boards_are_refused():
    with pytest.raises(ValueError):
        BoardState((0,) * 8)
    with pytest.raises(ValueError):
        BoardState((3,) + (0,) * 8)
    with pytest.raises(ValueError):
        BoardState.from_key(NUM_STATES)


def test_render_and_array():
    board = EMPTY_BOARD.place(0, Player.X).place(8, Player.O)
    assert board.render().splitlines()[0] == "X |   |  "
    arr = board.to_array()
    assert arr.shape == (3, 3)
    assert arr[0, 0] == 1 and arr[2, 2] == 2
