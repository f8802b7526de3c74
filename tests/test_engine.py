import pytest

from tictactoe_qlearning import (
    EMPTY_BOARD,
    GameEngine,
    GameStatus,
    Player,
    QLearner,
    Rewards,
    ValueTable,
)

TOP_ROW_GAME = [0, 3, 1, 4, 2]
# Ends on the board A B A / A B B / B A A with A = X
DRAW_GAME = [0, 1, 2, 4, 3, 5, 7, 6, 8]


def _engine(alpha=1.0, gamma=0.9, **kwargs):
    table = ValueTable()
    return GameEngine(table, QLearner(alpha, gamma), **kwargs), table


def _boards(moves, first=Player.X):
    """Boards before each ply."""
    boards = [EMPTY_BOARD]
    player = first
    for m in moves:
        boards.append(boards[-1].place(m, player))
        player = player.opponent()
    return boards


def test_scripted_top_row_win_reported_at_fifth_ply():
    engine, _ = _engine()
    statuses = [engine.apply_move(m).status for m in TOP_ROW_GAME]
    assert statuses[:4] == [GameStatus.IN_PROGRESS] * 4
    assert statuses[4] == GameStatus.WON_BY_FIRST_MOVER
    assert engine.winner == Player.X
    assert engine.legal_moves() == []


def test_second_mover_win():
    engine, _ = _engine()
    for m in [0, 3, 1, 4, 8]:
        engine.apply_move(m)
    assert engine.apply_move(5).status == GameStatus.WON_BY_SECOND_MOVER
    assert engine.outcome_for(Player.O) == 'win'
    assert engine.outcome_for(Player.X) == 'loss'


def test_starting_side_is_configurable():
    engine, _ = _engine(starting_player=Player.O)
    assert engine.current_player == Player.O
    results = [engine.apply_move(m) for m in TOP_ROW_GAME]
    assert results[0].player == Player.O
    assert results[-1].status == GameStatus.WON_BY_FIRST_MOVER
    assert engine.winner == Player.O


def test_draw_board_is_reported_as_draw():
    engine, _ = _engine()
    results = [engine.apply_move(m) for m in DRAW_GAME]
    assert all(r.status == GameStatus.IN_PROGRESS for r in results[:-1])
    assert results[-1].status == GameStatus.DRAW
    assert engine.board.cells == (1, 2, 1, 1, 2, 2, 2, 1, 1)


def test_occupied_cell_is_rejected_without_state_change():
    engine, table = _engine()
    engine.apply_move(4)
    board, player, size = engine.board, engine.current_player, len(table)
    result = engine.apply_move(4)
    assert not result.accepted
    assert "occupied" in result.reason
    assert engine.board == board
    assert engine.current_player == player
    assert len(table) == size


@pytest.mark.parametrize("cell", [-1, 9, 42])
def test_out_of_range_cell_is_rejected(cell):
    engine, _ = _engine()
    result = engine.apply_move(cell)
    assert not result.accepted
    assert engine.board == EMPTY_BOARD


def test_moves_after_game_end_are_rejected():
    engine, _ = _engine()
    for m in TOP_ROW_GAME:
        engine.apply_move(m)
    result = engine.apply_move(8)
    assert not result.accepted
    assert result.status == GameStatus.WON_BY_FIRST_MOVER


def test_win_rewards_mover_and_penalises_other_side():
    engine, table = _engine()
    for m in TOP_ROW_GAME:
        engine.apply_move(m)
    b = _boards(TOP_ROW_GAME)
    assert table.value(b[4], 2) == pytest.approx(1.0)   # winning ply
    assert table.value(b[3], 4) == pytest.approx(-1.0)  # O's last move
    assert table.value(b[2], 1) == 0.0                   # continuing ply, reward 0
    assert table.value(b[0], 0) == 0.0


class CountingLearner(QLearner):
    def __init__(self, alpha=1.0, gamma=0.9):
        super().__init__(alpha, gamma)
        self.calls = 0

    def update(self, table, t):
        self.calls += 1
        return super().update(table, t)


def _updates_per_ply(moves):
    learner = CountingLearner()
    engine = GameEngine(ValueTable(), learner)
    counts = []
    for m in moves:
        before = learner.calls
        engine.apply_move(m)
        counts.append(learner.calls - before)
    return counts


def test_every_ply_updates_the_pair_just_played():
    assert _updates_per_ply(TOP_ROW_GAME) == [1, 1, 1, 1, 2]
    assert _updates_per_ply(DRAW_GAME) == [1] * 8 + [2]


def test_continuing_ply_bootstraps_from_board_after_move():
    engine, table = _engine(alpha=1.0, gamma=0.9)
    b = _boards(TOP_ROW_GAME)
    table.values(b[1].key)[3] = 0.5
    engine.apply_move(0)
    assert table.value(b[0], 0) == pytest.approx(0.45)


def test_losing_side_keeps_settled_penalty_across_replays():
    engine, table = _engine(alpha=1.0, gamma=0.9)
    b = _boards(TOP_ROW_GAME)
    for _ in range(3):
        engine.reset()
        for m in TOP_ROW_GAME:
            engine.apply_move(m)
    assert table.value(b[4], 2) == pytest.approx(1.0)
    # bootstrapped to 0.9 on the ply, then settled
    assert table.value(b[3], 4) == pytest.approx(-1.0)
    # the next board's only written entry is the -1 above; unplayed moves stay 0
    assert table.value(b[2], 1) == 0.0


def test_draw_rewards_both_sides():
    engine, table = _engine(rewards=Rewards(draw=0.5))
    for m in DRAW_GAME:
        engine.apply_move(m)
    b = _boards(DRAW_GAME)
    assert table.value(b[8], 8) == pytest.approx(0.5)
    assert table.value(b[7], 6) == pytest.approx(0.5)


def test_learning_can_be_disabled():
    engine, table = _engine(learning=False)
    for m in TOP_ROW_GAME:
        engine.apply_move(m)
    assert len(table) == 0
    assert GameEngine().apply_move(0).accepted


def test_reset_restores_empty_board_key():
    engine, _ = _engine()
    for m in [0, 4, 8]:
        engine.apply_move(m)
    engine.reset()
    assert engine.board.key == EMPTY_BOARD.key
    assert engine.status == GameStatus.IN_PROGRESS
    assert engine.current_player == Player.X
    assert engine.move_history == []
