# tests/test_grid.py
from __future__ import annotations

import numpy as np
import pytest

from core import (COLS, ROWS, KINDS, I, O, Piece, spawn_piece, empty_grid, as_grid,
                  collides, drop_row, lock, clear_lines, rotate)

T = KINDS.index("T")


@pytest.mark.parametrize("kind", range(len(KINDS)))
def test_spawn_never_collides_on_empty_grid(kind: int) -> None:
    assert not collides(empty_grid(), spawn_piece(kind))


@pytest.mark.parametrize("kind", range(len(KINDS)))
@pytest.mark.parametrize("rot", range(4))
def test_drop_row_is_idempotent(kind: int, rot: int, from_heights) -> None:
    grid = from_heights([3, 0, 5, 1, 7, 2, 0, 4, 6, 2])
    p = Piece(kind, rot, 3, 0)
    y = drop_row(grid, p)
    assert drop_row(grid, p._replace(y=y)) == y
    assert not collides(grid, p._replace(y=y))
    assert collides(grid, p._replace(y=y), 0, 1)


def test_cells_above_ceiling_never_collide() -> None:
    grid = np.ones((ROWS, COLS), dtype=np.int8)
    assert not collides(grid, Piece(I, 1, 3, -4))
    assert collides(grid, Piece(I, 1, 3, -3))


def test_walls_and_floor_collide() -> None:
    grid = empty_grid()
    assert collides(grid, Piece(I, 0, -1, 5))
    assert collides(grid, Piece(I, 0, COLS - 3, 5))
    assert collides(grid, Piece(I, 0, 3, ROWS - 1))
    assert not collides(grid, Piece(I, 0, 3, ROWS - 2))


def test_lock_copies_and_drops_cells_above_ceiling() -> None:
    grid = empty_grid()
    locked = lock(grid, Piece(I, 1, 0, -2))       # rows -2..1 in column 2
    assert not grid.any()
    assert locked[:, 2].tolist()[:3] == [I + 1, I + 1, 0]
    assert int((locked != 0).sum()) == 2


def test_clear_lines_without_full_rows_is_noop(from_heights) -> None:
    grid = from_heights([4, 4, 4, 4, 4, 4, 4, 4, 4, 0])
    after, cleared = clear_lines(grid)
    assert cleared == 0
    assert after.shape == (ROWS, COLS)
    assert np.array_equal(after, grid)
    assert after is not grid


def test_clear_lines_removes_full_rows_and_keeps_order() -> None:
    grid = empty_grid()
    grid[ROWS - 1, :] = 2
    grid[ROWS - 2, 0] = 5
    grid[ROWS - 3, :] = 3
    grid[ROWS - 4, 1] = 7
    after, cleared = clear_lines(grid)
    assert cleared == 2
    assert after.shape == (ROWS, COLS)
    assert after[ROWS - 1].tolist() == [5] + [0] * 9
    assert after[ROWS - 2].tolist() == [0, 7] + [0] * 8
    assert int((after != 0).sum()) == 2


def test_square_never_rotates() -> None:
    assert rotate(empty_grid(), spawn_piece(O), 1) is None
    assert rotate(empty_grid(), spawn_piece(O), -1) is None


def test_rotation_uses_first_free_kick() -> None:
    # vertical I against the left wall: (0,0) and (-1,0) fail, (2,0) fits
    assert rotate(empty_grid(), Piece(I, 1, -2, 10), 1) == Piece(I, 2, 0, 10)
    assert rotate(empty_grid(), spawn_piece(T), 1) == Piece(T, 1, 3, 2)
    assert rotate(empty_grid(), spawn_piece(T), -1) == Piece(T, 3, 3, 2)


def test_rotation_without_legal_kick_is_noop() -> None:
    grid = np.ones((ROWS, COLS), dtype=np.int8)
    p = Piece(T, 0, 4, 20)
    for x, y in p.cells():
        grid[y, x] = 0
    assert rotate(grid, p, 1) is None
    assert rotate(grid, p, -1) is None


def test_as_grid_rejects_wrong_shape() -> None:
    assert as_grid([[0] * COLS] * ROWS).dtype == np.int8
    with pytest.raises(ValueError, match="grid must be"):
        as_grid([[0] * COLS] * 20)
