"""
Tic Tac Toe Q-Learning Arena
- Settings loading
- Baseline opponents (random, minimax) and the greedy learned agent
- Matches between agents
- Training / value-table visualizations
- Command line entry point
"""

import argparse
import json
import os
import random
from functools import lru_cache
from typing import Dict, List, Optional, Tuple

import numpy as np
import matplotlib
matplotlib.use("Agg")  # Use non-interactive backend
import matplotlib.pyplot as plt
import seaborn as sns

from tictactoe_qlearning import (
    AgentConfig,
    AnyValueTable,
    BaseAgent,
    BoardState,
    EMPTY_BOARD,
    EpsilonGreedyPolicy,
    GameEngine,
    GameStatus,
    Player,
    QLearningTicTacToe,
    check_win,
)

CONFIG_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "config", "settings.json")


# ------------------------ Configuration ------------------------

def load_config(path: Optional[str] = None, **overrides) -> AgentConfig:
    """Merge the JSON settings file (if present) and overrides over the defaults."""
    cfg_path = path or CONFIG_PATH
    data: Dict = {}
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        if path is not None:
            raise
    if not isinstance(data, dict):
        raise ValueError(f"settings file {cfg_path} must hold a JSON object")
    data.update({k: v for k, v in overrides.items() if v is not None})
    return AgentConfig.from_dict(data)


# ==================== BASELINE AGENTS ====================

class RandomAgent(BaseAgent):
    """Agent that chooses random valid moves."""

    def __init__(self, player: Player = Player.X, rng: Optional[random.Random] = None):
        super().__init__("Random", player)
        self.rng = rng if rng is not None else random.Random()

    def choose_action(self, board: BoardState) -> int:
        return self.rng.choice(board.available_moves())


@lru_cache(maxsize=None)
def _negamax(cells: Tuple[int, ...], to_move: int) -> int:
    """Game value (+1 win, 0 draw, -1 loss) for the side to move."""
    board = BoardState(cells)
    last = Player(to_move).opponent()
    if check_win(board, last):
        return -1
    moves = board.available_moves()
    if not moves:
        return 0
    me = Player(to_move)
    return max(-_negamax(board.place(m, me).cells, last.value) for m in moves)


class MinimaxAgent(BaseAgent):
    """Perfect player; ties go to the lowest cell index so play is deterministic."""

    def __init__(self, player: Player = Player.X):
        super().__init__("Minimax", player)

    def move_scores(self, board: BoardState) -> Dict[int, int]:
        opp = self.player.opponent()
        return {m: -_negamax(board.place(m, self.player).cells, opp.value)
                for m in board.available_moves()}

    def choose_action(self, board: BoardState) -> int:
        scores = self.move_scores(board)
        best = max(scores.values())
        return min(m for m, s in scores.items() if s == best)


class GreedyAgent(BaseAgent):
    """Learned table played without exploration and without learning."""

    def __init__(self, table: AnyValueTable, player: Player = Player.X,
                 name: str = "Q-Learning", rng: Optional[random.Random] = None):
        super().__init__(name, player)
        self.table = table
        self.policy = EpsilonGreedyPolicy(rng)

    def choose_action(self, board: BoardState) -> int:
        return self.policy.choose_move(board, self.table, board.available_moves(), 0.0)


# ==================== MATCHES ====================

def play_game(agent_x: BaseAgent, agent_o: BaseAgent) -> GameStatus:
    """Play a single game; X moves first. No table is touched."""
    agent_x.player = Player.X
    agent_o.player = Player.O
    engine = GameEngine(learning=False)
    while not engine.status.is_terminal:
        agent = agent_x if engine.current_player == Player.X else agent_o
        result = engine.apply_move(agent.choose_action(engine.board))
        if not result.accepted:
            raise ValueError(f"{agent.name} played an illegal move: {result.reason}")
    agent_x.update_stats(engine.outcome_for(Player.X))
    agent_o.update_stats(engine.outcome_for(Player.O))
    return engine.status


def run_match(agent1: BaseAgent, agent2: BaseAgent, num_games: int = 10) -> Dict[str, int]:
    """
    Run a match between two agents.

    Args:
        agent1: First agent (plays both X and O)
        agent2: Second agent (plays both X and O)
        num_games: Number of games per side

    Returns:
        Match statistics
    """
    stats = {
        'agent1_wins': 0,
        'agent2_wins': 0,
        'draws': 0,
        'games': num_games * 2
    }

    # agent1 as X
    for _ in range(num_games):
        result = play_game(agent1, agent2)
        if result == GameStatus.WON_BY_FIRST_MOVER:
            stats['agent1_wins'] += 1
        elif result == GameStatus.WON_BY_SECOND_MOVER:
            stats['agent2_wins'] += 1
        else:
            stats['draws'] += 1

    # agent2 as X
    for _ in range(num_games):
        result = play_game(agent2, agent1)
        if result == GameStatus.WON_BY_FIRST_MOVER:
            stats['agent2_wins'] += 1
        elif result == GameStatus.WON_BY_SECOND_MOVER:
            stats['agent1_wins'] += 1
        else:
            stats['draws'] += 1

    return stats


# ------------------------ Visualizations ------------------------

def plot_training_history(history: Dict[str, List[float]], save_path: str,
                          window: int = 50) -> str:
    """Reward (moving average), steps, epsilon and table size in one figure."""
    rewards = history["rewards"]
    eps = list(range(len(rewards)))

    fig, ((ax_r, ax_s), (ax_e, ax_q)) = plt.subplots(2, 2, figsize=(12, 8))
    fig.suptitle('Self-Play Training', fontsize=14, fontweight='bold')

    ax_r.plot(eps, rewards, color="#2563eb", alpha=0.3)
    if len(rewards) >= window:
        ma = np.convolve(rewards, np.ones(window) / window, mode='valid')
        ax_r.plot(range(window - 1, len(rewards)), ma, color="#f59e0b", linewidth=2.0,
                  label=f"MA-{window}")
        ax_r.legend()
    ax_r.set_title("First-Mover Reward per Episode")
    ax_r.set_xlabel("Episode")
    ax_r.set_ylabel("Reward")

    ax_s.plot(eps, history["steps"], color="#9333ea", alpha=0.6)
    ax_s.set_title("Plies per Episode")
    ax_s.set_xlabel("Episode")

    ax_e.plot(eps, history["epsilons"], color="#db2777")
    ax_e.set_title("Exploration Rate (epsilon)")
    ax_e.set_xlabel("Episode")

    ax_q.plot(eps, history["q_sizes"], color="#ef4444")
    ax_q.set_title("Value-Table Size")
    ax_q.set_xlabel("Episode")
    ax_q.set_ylabel("States")

    for ax in (ax_r, ax_s, ax_e, ax_q):
        ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(save_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    return save_path


def plot_value_heatmap(table: AnyValueTable, save_path: str,
                       board: BoardState = EMPTY_BOARD) -> str:
    """Heatmap of the learned action values for one board; occupied cells are masked."""
    values = np.array([table.value(board, a) for a in range(9)]).reshape(3, 3)
    mask = board.to_array() != Player.EMPTY.value
    labels = np.array([str(Player(c)) if c else "" for c in board.cells]).reshape(3, 3)

    fig, ax = plt.subplots(1, 1, figsize=(5, 4.4))
    sns.heatmap(values, mask=mask, annot=True, fmt='.2f', cmap='RdYlGn', center=0.0,
                cbar_kws={'label': 'Q value'}, square=True, ax=ax,
                xticklabels=False, yticklabels=False)
    for r in range(3):
        for c in range(3):
            if labels[r, c]:
                ax.text(c + 0.5, r + 0.5, labels[r, c], ha='center', va='center',
                        fontsize=20, fontweight='bold')
    ax.set_title(f"Action Values (state {board.key})")
    plt.tight_layout()
    plt.savefig(save_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    return save_path


# ==================== COMMAND LINE ====================

def evaluate(agent: QLearningTicTacToe, games: int = 100,
             seed: Optional[int] = None) -> Dict[str, Dict[str, float]]:
    """Greedy learned play against the random and minimax baselines."""
    rng = random.Random(seed)
    results = {}
    for opponent in (RandomAgent(rng=rng), MinimaxAgent()):
        learned = GreedyAgent(agent.table, rng=rng)
        stats = run_match(learned, opponent, games)
        stats['win_rate'] = learned.get_win_rate()
        results[opponent.name] = stats
    return results


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Train a tabular Q-learning tic-tac-toe agent by self-play")
    p.add_argument("--config", default=None, help="JSON settings file (default: config/settings.json)")
    p.add_argument("--episodes", type=int, default=None, help="training episodes")
    p.add_argument("--double-q", action="store_true", default=None, help="use two value tables")
    p.add_argument("--cross-bootstrap", action="store_true", default=None,
                   help="double Q: evaluate the next action with the other table")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--eval-games", type=int, default=100, help="games per side against each baseline")
    p.add_argument("--plots", default=None, help="directory for training/value plots")
    p.add_argument("--quiet", action="store_true")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    verbose = not args.quiet
    cfg = load_config(args.config, training_episodes=args.episodes, double_q=args.double_q,
                      cross_bootstrap=args.cross_bootstrap, seed=args.seed)
    agent = QLearningTicTacToe(cfg)

    if verbose:
        kind = "Double Q-Learning" if cfg.double_q else "Q-Learning"
        print(f"Training {kind} for {cfg.training_episodes} episodes...")
    for progress in agent.train_agent(cfg.training_episodes):
        if verbose:
            print(f"  {progress.episodes_completed} ({progress.fraction * 100:.2f}%)"
                  f"  epsilon={progress.epsilon:.3f}  states={len(agent.table)}")

    results = evaluate(agent, args.eval_games, cfg.seed)
    if verbose:
        print(f"\n{'='*50}")
        print(f"{'Opponent':<12} {'Wins':<8} {'Draws':<8} {'Losses':<8} {'Win rate':<8}")
        print(f"{'-'*50}")
        for name, stats in results.items():
            print(f"{name:<12} {stats['agent1_wins']:<8} {stats['draws']:<8} "
                  f"{stats['agent2_wins']:<8} {stats['win_rate']:<8.2%}")
        print(f"{'='*50}\n")

    if args.plots:
        os.makedirs(args.plots, exist_ok=True)
        hist_path = plot_training_history(agent.supervisor.history,
                                          os.path.join(args.plots, "training_history.png"))
        heat_path = plot_value_heatmap(agent.table, os.path.join(args.plots, "empty_board_values.png"))
        if verbose:
            print(f"Training history saved to: {hist_path}")
            print(f"Value heatmap saved to: {heat_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
