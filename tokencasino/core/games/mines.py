"""
Mines - a 5x5 grid hiding mines and gems.

Each revealed gem raises the multiplier to 0.99 / (gems / (25 - revealed)).
Hitting a mine loses the bet; the player may cash out after the first gem.
With very few mines (auto-reveal threshold) every gem is revealed at once
and the round settles immediately.
"""

from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from tokencasino.core.exceptions import InvalidBet, RoundStateError
from tokencasino.core.models import GameType
from tokencasino.core.money import round_multiplier
from tokencasino.core.rng import RandomSource, random_int
from tokencasino.core.rounds import GameRound

GRID_SIZE = 5
TOTAL_CELLS = GRID_SIZE * GRID_SIZE
MIN_MINES = 1
MAX_MINES = 24
MIN_GEMS = 1
MAX_GEMS = 25
HOUSE_EDGE = 0.99

Cell = Tuple[int, int]


def calculate_multiplier(revealed: int, gem_count: int) -> float:
    """Multiplier after `revealed` gems, 1% house edge, 2 decimals."""
    probability = gem_count / (TOTAL_CELLS - revealed)
    return round_multiplier(HOUSE_EDGE / probability, 2)


def validate_counts(mine_count: int, gem_count: int):
    if not MIN_MINES <= mine_count <= MAX_MINES:
        raise InvalidBet(f"Mines must be between {MIN_MINES} and {MAX_MINES}")
    if not MIN_GEMS <= gem_count <= MAX_GEMS:
        raise InvalidBet(f"Gems must be between {MIN_GEMS} and {MAX_GEMS}")
    if mine_count + gem_count > TOTAL_CELLS:
        raise InvalidBet("Total mines and gems cannot exceed grid size")


def _random_cell(source: RandomSource) -> Cell:
    return random_int(source, 0, GRID_SIZE - 1), random_int(source, 0, GRID_SIZE - 1)


def place_board(
    source: RandomSource, mine_count: int, gem_count: int
) -> Tuple[FrozenSet[Cell], FrozenSet[Cell]]:
    """Place mines, then gems on the remaining cells, by rejection sampling."""
    validate_counts(mine_count, gem_count)

    mines: Set[Cell] = set()
    while len(mines) < mine_count:
        mines.add(_random_cell(source))

    gems: Set[Cell] = set()
    while len(gems) < gem_count:
        cell = _random_cell(source)
        if cell not in mines:
            gems.add(cell)

    return frozenset(mines), frozenset(gems)


class MinesRound(GameRound):
    game_type = GameType.MINES

    def __init__(
        self,
        *args,
        mine_count: int = 10,
        gem_count: int = 15,
        auto_cashout_at: Optional[float] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.mine_count = mine_count
        self.gem_count = gem_count
        self.auto_cashout_at = auto_cashout_at
        self.mine_positions: FrozenSet[Cell] = frozenset()
        self.gem_positions: FrozenSet[Cell] = frozenset()
        self.revealed: Set[Cell] = set()
        self.gems_revealed = 0
        self.current_multiplier = 1.0

    def validate(self):
        validate_counts(self.mine_count, self.gem_count)
        if self.auto_cashout_at is not None and self.auto_cashout_at <= 0:
            raise InvalidBet("Auto cash-out target must be positive")

    async def on_start(self):
        self.mine_positions, self.gem_positions = place_board(
            self.source, self.mine_count, self.gem_count
        )
        if self.mine_count <= self.config.auto_reveal_threshold:
            await self._reveal_all_gems()

    async def _reveal_all_gems(self):
        self.revealed.update(self.gem_positions)
        self.gems_revealed = len(self.gem_positions)
        self.current_multiplier = calculate_multiplier(self.gems_revealed, self.gem_count)
        await self.settle(self.current_multiplier, "auto_reveal")

    async def reveal(self, row: int, col: int) -> Dict:
        """Reveal a cell. Returns what was under it."""
        self._require_active()
        if not (0 <= row < GRID_SIZE and 0 <= col < GRID_SIZE):
            raise RoundStateError("Cell is outside the grid")
        cell = (row, col)
        if cell in self.revealed:
            raise RoundStateError("Cell already revealed")

        self.revealed.add(cell)

        if cell in self.mine_positions:
            await self.settle(0, "mine")
            return {"cell": [row, col], "content": "mine"}

        if cell not in self.gem_positions:
            return {"cell": [row, col], "content": "empty"}

        self.gems_revealed += 1
        self.current_multiplier = calculate_multiplier(self.gems_revealed, self.gem_count)

        if self.auto_cashout_at is not None and self.current_multiplier >= self.auto_cashout_at:
            await self.settle(self.current_multiplier, "auto_cashout")

        return {"cell": [row, col], "content": "gem", "multiplier": self.current_multiplier}

    async def cash_out(self):
        self._require_active()
        if self.gems_revealed == 0:
            raise RoundStateError("Reveal at least one gem before cashing out")
        return await self.settle(self.current_multiplier, "cashout")

    def _cells(self, cells) -> List[List[int]]:
        return sorted([r, c] for r, c in cells)

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data.update(
            {
                "mines": self.mine_count,
                "gems": self.gem_count,
                "revealed": self._cells(self.revealed),
                "gems_revealed": self.gems_revealed,
                "current_multiplier": self.current_multiplier,
                "auto_cashout_at": self.auto_cashout_at,
            }
        )
        # The board is only shown once the round is over
        if self.is_settled:
            data["mine_positions"] = self._cells(self.mine_positions)
            data["gem_positions"] = self._cells(self.gem_positions)
        return data
