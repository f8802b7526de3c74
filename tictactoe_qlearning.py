"""
Tic Tac Toe Q-Learning Engine
Board encoding, epsilon-greedy policy, temporal-difference learners and
self-play training for a single learned value table (or a double table).
"""

import random
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np


# ==================== ERRORS ====================

class InvalidStateError(RuntimeError):
    """Raised when a move is requested on a board with no legal moves."""


class TrainingInProgressError(RuntimeError):
    """Raised when an operation conflicts with a running training session."""


# ==================== GAME LOGIC ====================

class Player(Enum):
    """Cell contents and player identifiers."""
    EMPTY = 0
    X = 1
    O = 2

    def __str__(self):
        return {Player.EMPTY: ' ', Player.X: 'X', Player.O: 'O'}[self]

    def opponent(self):
        """Get opponent player."""
        if self == Player.X:
            return Player.O
        elif self == Player.O:
            return Player.X
        return Player.EMPTY


# Rows, columns, diagonals
WIN_LINES = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),
    (0, 3, 6), (1, 4, 7), (2, 5, 8),
    (0, 4, 8), (2, 4, 6),
)

NUM_CELLS = 9
NUM_STATES = 3 ** NUM_CELLS


@dataclass(frozen=True)
class BoardState:
    """Immutable snapshot of the 9 cells (values are Player values 0/1/2)."""
    cells: Tuple[int, ...] = (0,) * NUM_CELLS

    def __post_init__(self):
        if len(self.cells) != NUM_CELLS:
            raise ValueError(f"board needs {NUM_CELLS} cells, got {len(self.cells)}")
        if any(c not in (0, 1, 2) for c in self.cells):
            raise ValueError(f"invalid cell values: {self.cells}")

    @classmethod
    def from_cells(cls, cells: Sequence[Union[int, Player, None]]) -> 'BoardState':
        """Build a board from Player members, ints or None (empty)."""
        values = []
        for c in cells:
            if c is None:
                values.append(0)
            elif isinstance(c, Player):
                values.append(c.value)
            else:
                values.append(int(c))
        return cls(tuple(values))

    @classmethod
    def from_key(cls, key: int) -> 'BoardState':
        """Decode a packed base-3 key."""
        if not 0 <= key < NUM_STATES:
            raise ValueError(f"key out of range: {key}")
        cells = []
        for _ in range(NUM_CELLS):
            key, digit = divmod(key, 3)
            cells.append(digit)
        return cls(tuple(cells))

    @property
    def key(self) -> int:
        """Packed base-3 encoding; cell i is digit i (least significant first)."""
        k = 0
        for c in reversed(self.cells):
            k = k * 3 + c
        return k

    def place(self, index: int, player: Player) -> 'BoardState':
        """Return the board with `player` placed on the empty cell `index`."""
        if self.cells[index] != Player.EMPTY.value:
            raise ValueError(f"cell {index} is occupied")
        lst = list(self.cells)
        lst[index] = player.value
        return BoardState(tuple(lst))

    def available_moves(self) -> List[int]:
        return [i for i, v in enumerate(self.cells) if v == Player.EMPTY.value]

    def is_full(self) -> bool:
        return Player.EMPTY.value not in self.cells

    def to_array(self) -> np.ndarray:
        """3x3 integer array view of the board."""
        return np.array(self.cells, dtype=int).reshape(3, 3)

    def render(self) -> str:
        rows = []
        for r in range(3):
            rows.append(" | ".join(str(Player(self.cells[r * 3 + c])) for c in range(3)))
        return "\n---------\n".join(rows)


EMPTY_BOARD = BoardState()


def check_win(board: BoardState, player: Player) -> bool:
    """True iff all three cells of some winning line hold `player`."""
    if player == Player.EMPTY:
        return False
    v = player.value
    cells = board.cells
    return any(cells[a] == v and cells[b] == v and cells[c] == v for a, b, c in WIN_LINES)


def available_moves(board: BoardState) -> List[int]:
    """Legal (empty) cell indices in ascending order."""
    return board.available_moves()


# ==================== CONFIGURATION ====================

@dataclass
class AgentConfig:
    """Hyperparameters and rewards for the learning agent."""
    learning_rate: float = 0.1
    discount_factor: float = 0.9
    epsilon: float = 1.0
    epsilon_min: float = 0.05
    epsilon_decay: float = 0.995
    win_reward: float = 1.0
    loss_reward: float = -1.0
    draw_reward: float = 0.5
    report_every: int = 100
    training_episodes: int = 10000
    double_q: bool = False
    cross_bootstrap: bool = False
    seed: Optional[int] = None

    def __post_init__(self):
        if not 0.0 < self.learning_rate <= 1.0:
            raise ValueError(f"learning_rate must be in (0, 1], got {self.learning_rate}")
        if not 0.0 <= self.discount_factor <= 1.0:
            raise ValueError(f"discount_factor must be in [0, 1], got {self.discount_factor}")
        for name in ("epsilon", "epsilon_min", "epsilon_decay"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if self.report_every < 1:
            raise ValueError(f"report_every must be positive, got {self.report_every}")
        if self.training_episodes < 0:
            raise ValueError(f"training_episodes must be >= 0, got {self.training_episodes}")

    @classmethod
    def from_dict(cls, data: Dict) -> 'AgentConfig':
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"unknown config keys: {sorted(unknown)}")
        return cls(**data)

    @property
    def rewards(self) -> 'Rewards':
        return Rewards(win=self.win_reward, loss=self.loss_reward, draw=self.draw_reward)


@dataclass(frozen=True)
class Rewards:
    """Terminal rewards from the receiving side's perspective."""
    win: float = 1.0
    loss: float = -1.0
    draw: float = 0.5


# ==================== VALUE TABLES ====================

class ValueTable:
    """Mapping from board key to a 9-slot action-value vector.

    Vectors are created lazily, initialised to zero, on first reference.
    Only the slots of legal moves are meaningful for a given board.
    """

    def __init__(self):
        self._values: Dict[int, np.ndarray] = {}

    def values(self, key: int) -> np.ndarray:
        """Mutable value vector for `key`, created on first use."""
        vec = self._values.get(key)
        if vec is None:
            vec = np.zeros(NUM_CELLS, dtype=np.float64)
            self._values[key] = vec
        return vec

    def action_values(self, key: int) -> np.ndarray:
        """Values the policy ranks; same call as DoubleValueTable.action_values."""
        return self.values(key)

    def max_value(self, key: int, moves: Sequence[int]) -> float:
        """Maximum over `moves`; 0.0 when there are none."""
        if not moves:
            return 0.0
        return float(self.values(key)[list(moves)].max())

    def value(self, board: BoardState, action: int) -> float:
        """Read one entry without creating it."""
        vec = self._values.get(board.key)
        return 0.0 if vec is None else float(vec[action])

    def clear(self):
        self._values.clear()

    def keys(self) -> Iterable[int]:
        return self._values.keys()

    def tables(self) -> List['ValueTable']:
        return [self]

    def to_dict(self) -> Dict[int, List[float]]:
        return {k: v.tolist() for k, v in self._values.items()}

    @classmethod
    def from_dict(cls, data: Dict[int, Sequence[float]]) -> 'ValueTable':
        table = cls()
        for k, v in data.items():
            vec = np.asarray(v, dtype=np.float64)
            if vec.shape != (NUM_CELLS,):
                raise ValueError(f"entry {k} must have {NUM_CELLS} values")
            table._values[int(k)] = vec.copy()
        return table

    def __len__(self):
        return len(self._values)

    def __contains__(self, key: int):
        return key in self._values


class DoubleValueTable:
    """Two independent tables for double Q-learning."""

    def __init__(self):
        self.first = ValueTable()
        self.second = ValueTable()

    def action_values(self, key: int) -> np.ndarray:
        """Per-action mean of both tables."""
        return (self.first.values(key) + self.second.values(key)) / 2.0

    def value(self, board: BoardState, action: int) -> float:
        return (self.first.value(board, action) + self.second.value(board, action)) / 2.0

    def clear(self):
        self.first.clear()
        self.second.clear()

    def keys(self) -> Iterable[int]:
        return set(self.first.keys()) | set(self.second.keys())

    def tables(self) -> List[ValueTable]:
        return [self.first, self.second]

    def __len__(self):
        return len(self.keys())

    def __contains__(self, key: int):
        return key in self.first or key in self.second


AnyValueTable = Union[ValueTable, DoubleValueTable]


# ==================== POLICY ====================

class EpsilonGreedyPolicy:
    """Epsilon-greedy selector reading a value table."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng if rng is not None else random.Random()

    def choose_move(self, board: BoardState, table: AnyValueTable,
                    moves: Optional[Sequence[int]] = None, epsilon: float = 0.0) -> int:
        """
        Pick a legal move.

        Args:
            board: Current board
            table: Single or double value table
            moves: Legal moves (defaults to the board's empty cells)
            epsilon: Probability of a uniformly random move

        Returns:
            Chosen cell index
        """
        moves = list(moves) if moves is not None else board.available_moves()
        if not moves:
            raise InvalidStateError(f"no legal moves on board {board.cells}")

        if self.rng.random() < epsilon:
            return self.rng.choice(moves)

        q = table.action_values(board.key)[moves]
        best = q.max()
        # Uniform tie-break among all maximal moves
        candidates = [m for m, v in zip(moves, q) if v == best]
        return self.rng.choice(candidates)


class ExplorationSchedule:
    """Multiplicative epsilon decay with a floor."""

    def __init__(self, epsilon: float = 1.0, epsilon_min: float = 0.05, decay: float = 0.995):
        self.initial = epsilon
        self.epsilon_min = epsilon_min
        self.decay = decay
        self.epsilon = max(epsilon_min, epsilon)
        self.steps = 0

    def step(self) -> float:
        self.epsilon = max(self.epsilon_min, self.epsilon * self.decay)
        self.steps += 1
        return self.epsilon

    def value_at(self, k: int) -> float:
        """Closed form of epsilon after k decay steps."""
        return max(self.epsilon_min, self.initial * self.decay ** k)

    def reset(self):
        self.epsilon = max(self.epsilon_min, self.initial)
        self.steps = 0


# ==================== LEARNERS ====================

@dataclass(frozen=True)
class Transition:
    """One (state, action, reward, next state) step handed to a learner."""
    state: BoardState
    action: int
    reward: float
    next_state: BoardState
    done: bool = False


class QLearner:
    """One-step Q-learning on a single table."""

    def __init__(self, alpha: float = 0.1, gamma: float = 0.9):
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        if not 0.0 <= gamma <= 1.0:
            raise ValueError(f"gamma must be in [0, 1], got {gamma}")
        self.alpha = alpha
        self.gamma = gamma

    def _target(self, table: ValueTable, t: Transition) -> float:
        if t.done:
            return t.reward
        nxt = t.next_state
        return t.reward + self.gamma * table.max_value(nxt.key, nxt.available_moves())

    def _apply(self, table: ValueTable, t: Transition, target: float) -> float:
        q = table.values(t.state.key)
        td_error = target - q[t.action]
        q[t.action] += self.alpha * td_error
        return float(td_error)

    def update(self, table: ValueTable, t: Transition) -> float:
        """Apply the update and return the TD error."""
        return self._apply(table, t, self._target(table, t))


class DoubleQLearner(QLearner):
    """Double Q-learning: each update touches one randomly chosen table.

    By default the bootstrap reads the updated table's own max. With
    `cross_bootstrap` the updated table selects the next action and the other
    table evaluates it.
    """

    def __init__(self, alpha: float = 0.1, gamma: float = 0.9,
                 cross_bootstrap: bool = False, rng: Optional[random.Random] = None):
        super().__init__(alpha, gamma)
        self.cross_bootstrap = cross_bootstrap
        self.rng = rng if rng is not None else random.Random()

    def update(self, tables: DoubleValueTable, t: Transition) -> float:
        if self.rng.random() < 0.5:
            updated, other = tables.first, tables.second
        else:
            updated, other = tables.second, tables.first

        if t.done or not self.cross_bootstrap:
            target = self._target(updated, t)
        else:
            moves = t.next_state.available_moves()
            if moves:
                key = t.next_state.key
                own = updated.values(key)
                best = max(moves, key=lambda a: own[a])
                target = t.reward + self.gamma * float(other.values(key)[best])
            else:
                target = t.reward
        return self._apply(updated, t, target)


def make_table(config: AgentConfig) -> AnyValueTable:
    return DoubleValueTable() if config.double_q else ValueTable()


def make_learner(config: AgentConfig, rng: Optional[random.Random] = None) -> QLearner:
    if config.double_q:
        return DoubleQLearner(config.learning_rate, config.discount_factor,
                              cross_bootstrap=config.cross_bootstrap, rng=rng)
    return QLearner(config.learning_rate, config.discount_factor)


# ==================== GAME ENGINE ====================

class GameStatus(Enum):
    """Engine state; everything except IN_PROGRESS is terminal."""
    IN_PROGRESS = "in_progress"
    WON_BY_FIRST_MOVER = "won_by_first_mover"
    WON_BY_SECOND_MOVER = "won_by_second_mover"
    DRAW = "draw"

    @property
    def is_terminal(self) -> bool:
        return self != GameStatus.IN_PROGRESS


@dataclass(frozen=True)
class MoveResult:
    """Outcome of a move request, returned as data to the caller."""
    accepted: bool
    status: GameStatus
    board: BoardState
    cell: Optional[int] = None
    player: Optional[Player] = None
    reason: Optional[str] = None
    reply: Optional['MoveResult'] = None


class GameEngine:
    """Turn-alternating state machine for one game at a time.

    Every ply updates the (state before, action) pair the mover just played:
    reward 0 bootstrapped from the board after the move while the game goes
    on, the terminal reward on the ply that ends it. The ending ply also
    settles the other side's last pair (loss on a win, draw on a draw).
    """

    def __init__(self, table: Optional[AnyValueTable] = None, learner: Optional[QLearner] = None,
                 rewards: Optional[Rewards] = None, starting_player: Player = Player.X,
                 learning: bool = True):
        if starting_player == Player.EMPTY:
            raise ValueError("starting player must be X or O")
        self.table = table
        self.learner = learner
        self.rewards = rewards if rewards is not None else Rewards()
        self.starting_player = starting_player
        self.learning = learning
        self.reset()

    def reset(self) -> BoardState:
        """Reset the game to the empty board."""
        self.board = EMPTY_BOARD
        self.current_player = self.starting_player
        self.status = GameStatus.IN_PROGRESS
        self.winner: Optional[Player] = None
        self.move_history: List[Tuple[int, Player]] = []
        self._last: Dict[Player, Tuple[BoardState, int]] = {}
        return self.board

    def legal_moves(self) -> List[int]:
        if self.status.is_terminal:
            return []
        return self.board.available_moves()

    def _reject(self, cell: Optional[int], reason: str) -> MoveResult:
        return MoveResult(False, self.status, self.board, cell=cell,
                          player=self.current_player, reason=reason)

    def _learn(self, t: Transition):
        if self.learning and self.learner is not None and self.table is not None:
            self.learner.update(self.table, t)

    def apply_move(self, cell: int) -> MoveResult:
        """Play `cell` for the current player."""
        if self.status.is_terminal:
            return self._reject(cell, "game is over")
        if not isinstance(cell, (int, np.integer)) or not 0 <= cell < NUM_CELLS:
            return self._reject(cell, f"cell {cell} is out of range")
        if self.board.cells[cell] != Player.EMPTY.value:
            return self._reject(cell, f"cell {cell} is occupied")

        cell = int(cell)
        mover = self.current_player
        before = self.board
        self.board = before.place(cell, mover)
        self.move_history.append((cell, mover))

        if check_win(self.board, mover):
            self.winner = mover
            if mover == self.starting_player:
                self.status = GameStatus.WON_BY_FIRST_MOVER
            else:
                self.status = GameStatus.WON_BY_SECOND_MOVER
            self._learn(Transition(before, cell, self.rewards.win, self.board, done=True))
            self._settle(mover.opponent(), self.rewards.loss)
        elif self.board.is_full():
            self.status = GameStatus.DRAW
            self._learn(Transition(before, cell, self.rewards.draw, self.board, done=True))
            self._settle(mover.opponent(), self.rewards.draw)
        else:
            self._learn(Transition(before, cell, 0.0, self.board))
            self._last[mover] = (before, cell)
            self.current_player = mover.opponent()

        return MoveResult(True, self.status, self.board, cell=cell, player=mover)

    def _settle(self, player: Player, reward: float):
        last = self._last.pop(player, None)
        if last is not None:
            self._learn(Transition(last[0], last[1], reward, self.board, done=True))

    def outcome_for(self, player: Player) -> str:
        """'win', 'loss', 'draw' or 'in_progress' from `player`'s side."""
        if self.status == GameStatus.IN_PROGRESS:
            return 'in_progress'
        if self.status == GameStatus.DRAW:
            return 'draw'
        return 'win' if self.winner == player else 'loss'


# ==================== AGENTS ====================

class BaseAgent(ABC):
    """Abstract base class for fixed (non-learning) players."""

    def __init__(self, name: str, player: Player = Player.X):
        self.name = name
        self.player = player
        self.games_played = 0
        self.wins = 0
        self.losses = 0
        self.draws = 0

    @abstractmethod
    def choose_action(self, board: BoardState) -> int:
        """Return a legal cell index for `board`."""

    def update_stats(self, result: str):
        """
        Update agent statistics.

        Args:
            result: 'win', 'loss', or 'draw'
        """
        self.games_played += 1
        if result == 'win':
            self.wins += 1
        elif result == 'loss':
            self.losses += 1
        elif result == 'draw':
            self.draws += 1

    def get_win_rate(self) -> float:
        if self.games_played == 0:
            return 0.0
        return self.wins / self.games_played

    def __str__(self):
        return f"{self.name} ({self.player})"


# ==================== TRAINING SUPERVISOR ====================

@dataclass(frozen=True)
class TrainingProgress:
    """Progress event emitted between episodes."""
    episodes_completed: int
    total_episodes: int
    fraction: float
    epsilon: float
    cancelled: bool = False


def _new_history() -> Dict[str, List[float]]:
    return {"rewards": [], "steps": [], "epsilons": [], "q_sizes": []}


@dataclass
class TrainingSupervisor:
    """Runs self-play episodes, decays epsilon and reports progress."""
    engine: GameEngine
    policy: EpsilonGreedyPolicy
    schedule: ExplorationSchedule
    report_every: int = 100
    opponent: Optional[BaseAgent] = None
    games_played: int = 0
    history: Dict[str, List[float]] = field(default_factory=_new_history)

    def __post_init__(self):
        if self.report_every < 1:
            raise ValueError("report_every must be positive")
        if self.opponent is not None:
            # Fixed opponent always takes the second seat
            self.opponent.player = self.engine.starting_player.opponent()

    def _choose(self) -> int:
        engine = self.engine
        if self.opponent is not None and engine.current_player == self.opponent.player:
            return self.opponent.choose_action(engine.board)
        return self.policy.choose_move(engine.board, engine.table, engine.legal_moves(),
                                       self.schedule.epsilon)

    def play_episode(self) -> Tuple[GameStatus, int]:
        """Play one game from the empty board; returns (status, plies)."""
        engine = self.engine
        engine.reset()
        steps = 0
        while not engine.status.is_terminal:
            cell = self._choose()
            result = engine.apply_move(cell)
            if not result.accepted:
                raise InvalidStateError(f"illegal move {cell} during training: {result.reason}")
            steps += 1
        return engine.status, steps

    def _record(self, status: GameStatus, steps: int):
        rewards = self.engine.rewards
        if status == GameStatus.WON_BY_FIRST_MOVER:
            reward = rewards.win
        elif status == GameStatus.WON_BY_SECOND_MOVER:
            reward = rewards.loss
        else:
            reward = rewards.draw
        self.history["rewards"].append(reward)
        self.history["steps"].append(steps)
        self.history["epsilons"].append(self.schedule.epsilon)
        self.history["q_sizes"].append(len(self.engine.table) if self.engine.table is not None else 0)

    def run_episodes(self, n: int,
                     stop_event: Optional[threading.Event] = None) -> Iterator[TrainingProgress]:
        """
        Train for `n` episodes.

        Yields a TrainingProgress every `report_every` episodes and after the
        last one. A set `stop_event` ends the run at the next episode boundary.
        """
        if n < 0:
            raise ValueError(f"episode count must be >= 0, got {n}")
        self.games_played = 0
        for episode in range(n):
            if stop_event is not None and stop_event.is_set():
                yield TrainingProgress(self.games_played, n, self.games_played / n,
                                       self.schedule.epsilon, cancelled=True)
                return
            status, steps = self.play_episode()
            self.games_played += 1
            self.schedule.step()
            self._record(status, steps)
            if self.games_played % self.report_every == 0 or episode == n - 1:
                yield TrainingProgress(self.games_played, n, self.games_played / n,
                                       self.schedule.epsilon)

    def reset(self):
        self.games_played = 0
        self.history = _new_history()


# ==================== AGENT FACADE ====================

class QLearningTicTacToe:
    """Interactive agent: human moves, agent replies, training on demand.

    Table access is serialised by a lock; while a training run is active,
    moves and resets are refused.
    """

    def __init__(self, config: Optional[AgentConfig] = None, human_player: Player = Player.X):
        self.config = config if config is not None else AgentConfig()
        cfg = self.config
        self.rng = random.Random(cfg.seed)
        self.table = make_table(cfg)
        self.learner = make_learner(cfg, self.rng)
        self.policy = EpsilonGreedyPolicy(self.rng)
        self.schedule = ExplorationSchedule(cfg.epsilon, cfg.epsilon_min, cfg.epsilon_decay)
        self.engine = GameEngine(self.table, self.learner, cfg.rewards, starting_player=Player.X)
        self.supervisor = TrainingSupervisor(self.engine, self.policy, self.schedule,
                                             report_every=cfg.report_every)
        self.human_player = human_player
        self.is_training = False
        self._lock = threading.RLock()

    @property
    def games_played(self) -> int:
        return self.supervisor.games_played

    @property
    def board(self) -> BoardState:
        return self.engine.board

    @property
    def status(self) -> GameStatus:
        return self.engine.status

    def _busy(self, cell: Optional[int] = None) -> MoveResult:
        return MoveResult(False, self.engine.status, self.engine.board, cell=cell,
                          reason="training in progress")

    def make_move(self, cell: int) -> MoveResult:
        """Play `cell` for the human; the agent answers if the game goes on."""
        with self._lock:
            if self.is_training:
                return self._busy(cell)
            engine = self.engine
            if not engine.status.is_terminal and engine.current_player != self.human_player:
                return MoveResult(False, engine.status, engine.board, cell=cell,
                                  player=self.human_player, reason="not the human's turn")
            result = engine.apply_move(cell)
            if not result.accepted or result.status.is_terminal:
                return result
            reply = self._agent_move()
            return replace(result, status=reply.status, board=reply.board, reply=reply)

    def agent_move(self) -> MoveResult:
        """Let the agent play the current turn (e.g. when it moves first)."""
        with self._lock:
            if self.is_training:
                return self._busy()
            if self.engine.status.is_terminal:
                return MoveResult(False, self.engine.status, self.engine.board,
                                  reason="game is over")
            if self.engine.current_player == self.human_player:
                return MoveResult(False, self.engine.status, self.engine.board,
                                  player=self.engine.current_player, reason="not the agent's turn")
            return self._agent_move()

    def _agent_move(self) -> MoveResult:
        cell = self.policy.choose_move(self.engine.board, self.table, self.engine.legal_moves(),
                                       self.schedule.epsilon)
        return self.engine.apply_move(cell)

    def train_agent(self, episodes: Optional[int] = None,
                    stop_event: Optional[threading.Event] = None) -> Iterator[TrainingProgress]:
        """Start a training run; iterate the result to drive it.

        The run claims the agent on its first step, not here. Of two runs
        created before either is stepped, the one stepped second raises
        TrainingInProgressError while the other is active.
        """
        n = self.config.training_episodes if episodes is None else episodes
        if n < 0:
            raise ValueError(f"episode count must be >= 0, got {n}")
        with self._lock:
            if self.is_training:
                raise TrainingInProgressError("a training run is already active")
        return self._training_run(n, stop_event)

    def _training_run(self, n: int, stop_event: Optional[threading.Event]) -> Iterator[TrainingProgress]:
        with self._lock:
            if self.is_training:
                raise TrainingInProgressError("a training run is already active")
            self.is_training = True
        try:
            yield from self.supervisor.run_episodes(n, stop_event)
        finally:
            with self._lock:
                self.engine.reset()
                self.is_training = False

    def train(self, episodes: Optional[int] = None,
              stop_event: Optional[threading.Event] = None) -> List[TrainingProgress]:
        """Run a training session to completion and return its events."""
        return list(self.train_agent(episodes, stop_event))

    def reset_game(self) -> BoardState:
        """Clear the board; learned values are untouched."""
        with self._lock:
            if self.is_training:
                raise TrainingInProgressError("cannot reset the game while training")
            return self.engine.reset()

    def reset_learning(self):
        """Forget everything learned and zero the games counter."""
        with self._lock:
            if self.is_training:
                raise TrainingInProgressError("cannot reset learning while training")
            self.table.clear()
            self.supervisor.reset()
            self.schedule.reset()
            self.engine.reset()
