# core.py – 盤面モデル / 評価関数 / BFS 着手探索 (numpy グリッド, y 軸は下向き)
from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import List, Tuple, Optional, Dict, NamedTuple, Union
import numpy as np

# ────────── 定数 ──────────
COLS, ROWS        = 10, 24                  # 可視 20 行 + 隠し 4 行
HIDDEN_ROWS       = 4
SPAWN_X, SPAWN_Y  = 3, 2                    # 出現位置は隠し行の中
DANGER_HEIGHT     = 18                      # これを超えたら生存優先
DROUGHT_THRESHOLD = 12                      # I ミノ無しで何手までペナルティ無しか
DEFAULT_LOOKAHEAD = 0.8
CENTER_COLS       = (3, 4, 5, 6)

KINDS  = 'IJLOSTZ'                          # kind = KINDS.index(文字), セル値は kind+1
I, O   = KINDS.index('I'), KINDS.index('O')

# アクション語彙
LEFT, RIGHT, DOWN, CW, CCW, DROP = 'left', 'right', 'down', 'cw', 'ccw', 'drop'
ACTIONS = (LEFT, RIGHT, DOWN, CW, CCW, DROP)

# SRS 形状 (dx, dy)。アンカーはバウンディングボックス左上, dy は下向き
PIECE_SHAPES: Dict[int, List[List[Tuple[int,int]]]] = {
    I: [[(0,1),(1,1),(2,1),(3,1)], [(2,0),(2,1),(2,2),(2,3)],
        [(0,2),(1,2),(2,2),(3,2)], [(1,0),(1,1),(1,2),(1,3)]],
    KINDS.index('J'):
       [[(0,0),(0,1),(1,1),(2,1)], [(1,0),(2,0),(1,1),(1,2)],
        [(0,1),(1,1),(2,1),(2,2)], [(1,0),(1,1),(0,2),(1,2)]],
    KINDS.index('L'):
       [[(2,0),(0,1),(1,1),(2,1)], [(1,0),(1,1),(1,2),(2,2)],
        [(0,1),(1,1),(2,1),(0,2)], [(0,0),(1,0),(1,1),(1,2)]],
    O: [[(1,0),(2,0),(1,1),(2,1)]]*4,
    KINDS.index('S'):
       [[(1,0),(2,0),(0,1),(1,1)], [(1,0),(1,1),(2,1),(2,2)],
        [(1,1),(2,1),(0,2),(1,2)], [(0,0),(0,1),(1,1),(1,2)]],
    KINDS.index('T'):
       [[(1,0),(0,1),(1,1),(2,1)], [(1,0),(1,1),(2,1),(1,2)],
        [(0,1),(1,1),(2,1),(1,2)], [(1,0),(0,1),(1,1),(1,2)]],
    KINDS.index('Z'):
       [[(0,0),(1,0),(1,1),(2,1)], [(2,0),(1,1),(2,1),(1,2)],
        [(0,1),(1,1),(1,2),(2,2)], [(1,0),(0,1),(1,1),(0,2)]],
}

# キック表 (回転前, 回転後) → 試す順の (dx, dy)。SRS の y を下向きに反転済み
JLSTZ_KICKS = {(0,1):[(0,0),(-1,0),(-1,-1),(0,2),(-1,2)],
               (1,0):[(0,0),(1,0),(1,1),(0,-2),(1,-2)],
               (1,2):[(0,0),(1,0),(1,1),(0,-2),(1,-2)],
               (2,1):[(0,0),(-1,0),(-1,-1),(0,2),(-1,2)],
               (2,3):[(0,0),(1,0),(1,-1),(0,2),(1,2)],
               (3,2):[(0,0),(-1,0),(-1,1),(0,-2),(-1,-2)],
               (3,0):[(0,0),(-1,0),(-1,1),(0,-2),(-1,-2)],
               (0,3):[(0,0),(1,0),(1,-1),(0,2),(1,2)]}
I_KICKS = {(0,1):[(0,0),(-2,0),(1,0),(-2,1),(1,-2)],
           (1,0):[(0,0),(2,0),(-1,0),(2,-1),(-1,2)],
           (1,2):[(0,0),(-1,0),(2,0),(-1,-2),(2,1)],
           (2,1):[(0,0),(1,0),(-2,0),(1,2),(-2,-1)],
           (2,3):[(0,0),(2,0),(-1,0),(2,-1),(-1,2)],
           (3,2):[(0,0),(-2,0),(1,0),(-2,1),(1,-2)],
           (3,0):[(0,0),(1,0),(-2,0),(1,2),(-2,-1)],
           (0,3):[(0,0),(-1,0),(2,0),(-1,-2),(2,1)]}

# ────────── 重みプリセット ──────────
SURVIVAL_WEIGHTS: Dict[str, float] = {
    'aggregateHeight': 0.51,
    'completedLines' : -0.76,
    'holes'          : 1.0,
    'bumpiness'      : 0.18,
    'lookaheadScore' : 0.8,
    'centerClog'     : 0.8,
    'holeReduction'  : -2.5,
}
WELL_WEIGHTS: Dict[str, float] = {
    'aggregateHeight': 0.4,
    'holes'          : 4.0,
    'bumpiness'      : 0.25,
    'wellClogs'      : 8.0,
    'lineClearBonus' : -5.0,    # bonus * lines^2 → テトリスは 16 倍
    'droughtPenalty' : 0.08,
    'lookaheadScore' : 0.8,
}
PRESETS = {'survival': SURVIVAL_WEIGHTS,
           'left-well': WELL_WEIGHTS, 'right-well': WELL_WEIGHTS}


# ────────── Piece ──────────
class Piece(NamedTuple):
    """探索中は不変のスナップショット。移動は新しい Piece を返す。"""
    kind: int
    rot: int = 0
    x: int = SPAWN_X
    y: int = SPAWN_Y

    @property
    def pose(self) -> Tuple[int,int,int]:
        return self.x, self.y, self.rot

    def cells(self, dx=0, dy=0, drot=0):
        for bx,by in PIECE_SHAPES[self.kind][(self.rot+drot) % 4]:
            yield self.x+bx+dx, self.y+by+dy

    def moved(self, dx=0, dy=0, drot=0) -> "Piece":
        return self._replace(x=self.x+dx, y=self.y+dy, rot=(self.rot+drot) % 4)


def spawn_piece(kind:int) -> Piece:
    return Piece(kind, 0, SPAWN_X, SPAWN_Y)


# ────────── グリッド操作 ──────────
def empty_grid() -> np.ndarray:
    return np.zeros((ROWS, COLS), dtype=np.int8)

def as_grid(rows) -> np.ndarray:
    """list / ndarray を検査して (ROWS, COLS) の int8 グリッドにする"""
    grid = np.array(rows, dtype=np.int8)
    if grid.shape != (ROWS, COLS):
        raise ValueError(f'grid must be {ROWS}x{COLS}, got {grid.shape}')
    return grid

def collides(grid:np.ndarray, p:Piece, dx=0, dy=0, drot=0) -> bool:
    for x,y in p.cells(dx, dy, drot):
        if x<0 or x>=COLS or y>=ROWS: return True
        if y>=0 and grid[y, x]: return True      # 隠し行より上 (y<0) は素通り
    return False

def drop_row(grid:np.ndarray, p:Piece) -> int:
    y = p.y
    while not collides(grid, p, 0, y-p.y+1): y += 1
    return y

def lock(grid:np.ndarray, p:Piece) -> np.ndarray:
    new = grid.copy()
    for x,y in p.cells():
        if 0<=y<ROWS: new[y, x] = p.kind+1       # 天井より上は消える
    return new

def clear_lines(grid:np.ndarray) -> Tuple[np.ndarray,int]:
    """揃った行を消して上に空行を詰める。行数は常に ROWS のまま"""
    full    = (grid != 0).all(axis=1)
    cleared = int(full.sum())
    new     = np.zeros_like(grid)
    new[cleared:] = grid[~full]
    return new, cleared

def _kick_tests(kind:int, rot_from:int, rot_to:int):
    if kind == I:
        return I_KICKS.get((rot_from, rot_to), [(0, 0)])
    return JLSTZ_KICKS.get((rot_from, rot_to), [(0, 0)])

def rotate(grid:np.ndarray, p:Piece, d:int) -> Optional[Piece]:
    """SRS キック込み回転 (Clockwise:+1, CCW:-1)。通らなければ None"""
    if p.kind == O: return None
    for kx, ky in _kick_tests(p.kind, p.rot, (p.rot + d) % 4):
        if not collides(grid, p, kx, ky, d):
            return p.moved(kx, ky, d)
    return None


# ────────── 盤面特徴量 ──────────
def column_heights(grid:np.ndarray) -> List[int]:
    filled = grid != 0
    top    = filled.argmax(axis=0)
    return np.where(filled.any(axis=0), ROWS - top, 0).tolist()

def count_holes(grid:np.ndarray) -> int:
    filled  = grid != 0
    covered = np.logical_or.accumulate(filled, axis=0)   # 上にブロックがある
    return int((covered & ~filled).sum())

def bumpiness(heights:List[int], skip:Optional[int]=None) -> int:
    """隣接列の高さ差の総和。skip 番目の継ぎ目 (skip, skip+1) は数えない"""
    return sum(abs(heights[i]-heights[i+1])
               for i in range(len(heights)-1) if i != skip)


# ────────── 戦略 (タグ付きバリアント) ──────────
@dataclass(frozen=True)
class Survival:
    pass

@dataclass(frozen=True)
class Well:
    side: str = 'right'

    @property
    def column(self) -> int:
        return COLS-1 if self.side == 'right' else 0

    @property
    def neighbour(self) -> int:
        return COLS-2 if self.side == 'right' else 1

    @property
    def joint(self) -> int:
        # bumpiness の継ぎ目番号 (左端列の index)
        return min(self.column, self.neighbour)

Strategy = Union[Survival, Well]
STRATEGIES: Dict[str, Strategy] = {
    'survival': Survival(), 'left-well': Well('left'), 'right-well': Well('right'),
}

def parse_strategy(s) -> Strategy:
    if isinstance(s, (Survival, Well)): return s
    if s not in STRATEGIES:
        raise ValueError(f'unknown strategy: {s!r} (expected one of {sorted(STRATEGIES)})')
    return STRATEGIES[s]


# ────────── 評価関数 (小さいほど良い) ──────────
def evaluate(grid:np.ndarray, cleared:int, strategy:Strategy, w:Dict[str,float],
             drought:int=0, holes_before:Optional[int]=None) -> float:
    g = lambda k: w.get(k, 0)                        # 無いキーは係数 0
    heights = column_heights(grid)
    holes   = count_holes(grid)
    agg     = sum(heights)

    if isinstance(strategy, Well):
        well, nb = strategy.column, strategy.neighbour
        score = (g('holes')*holes
                 + g('bumpiness')*bumpiness(heights, skip=strategy.joint)
                 + g('aggregateHeight')*agg
                 + g('wellClogs')*heights[well]
                 + g('lineClearBonus')*cleared*cleared)
        if drought > DROUGHT_THRESHOLD:
            depth = heights[nb] - heights[well]      # 負なら抑止 (そのまま)
            if depth > 3:
                score += (drought-DROUGHT_THRESHOLD)*depth*g('droughtPenalty')
        return score

    if isinstance(strategy, Survival):
        score = (g('aggregateHeight')*agg
                 + g('completedLines')*cleared
                 + g('holes')*holes
                 + g('bumpiness')*bumpiness(heights))
        if holes_before is not None and cleared > 0 and holes_before > holes:
            score += g('holeReduction')*(holes_before-holes)
        if max(heights) > DANGER_HEIGHT:
            score += g('centerClog')*sum(heights[c] for c in CENTER_COLS)
        return score

    raise ValueError(f'unknown strategy: {strategy!r}')


def score_placement(grid:np.ndarray, p:Piece, strategy:Strategy, w:Dict[str,float],
                    drought:int=0) -> Tuple[float,np.ndarray]:
    """固定 → ライン消去 → 評価。(score, 消去後グリッド) を返す"""
    locked = lock(grid, p)
    after, cleared = clear_lines(locked)
    return evaluate(after, cleared, strategy, w, drought, count_holes(locked)), after


def best_next_score(grid:np.ndarray, kind:Optional[int], strategy:Strategy,
                    w:Dict[str,float], drought:int=0) -> float:
    """次ミノの全 (rot, x) をハードドロップして最良スコア。次ミノ無しなら 0"""
    if kind is None: return 0.0
    best = float('inf')
    for rot in range(4):
        for x in range(-2, COLS):
            p = Piece(kind, rot, x, 0)
            # 左右の壁だけで弾く (積み上がりと重なっても y=0 から落とす)
            if any(cx<0 or cx>=COLS for cx,_ in p.cells()): continue
            p = p._replace(y=drop_row(grid, p))
            best = min(best, score_placement(grid, p, strategy, w, drought)[0])
    return best


# ────────────────────  BFS 着手列挙  ────────────────────
class Landing(NamedTuple):
    piece: Piece
    path: List[str]           # そこまでの最短アクション列 (DROP は含まない)

def landings(grid:np.ndarray, piece:Piece) -> List[Landing]:
    """
    現在位置から BFS:
      1. <←,→,↓,CW,CCW> で辿れる (x, y, rot) を最短手順で 1 回ずつ訪問。
      2. 1 段落ちられない姿勢を『着地候補』として発見順に返す。
    visited は姿勢のみで判定するので探索は到達可能姿勢数で必ず止まる。
    """
    visited = {piece.pose}
    q = deque([(piece, [])])
    found: List[Landing] = []
    while q:
        p, path = q.popleft()
        if collides(grid, p, 0, 1):
            found.append(Landing(p, path))

        nexts = [
            (LEFT,  None if collides(grid, p, -1, 0) else p.moved(dx=-1)),
            (RIGHT, None if collides(grid, p,  1, 0) else p.moved(dx=1)),
            (DOWN,  None if collides(grid, p,  0, 1) else p.moved(dy=1)),
            (CW,    rotate(grid, p, 1)),
            (CCW,   rotate(grid, p, -1)),
        ]
        for name, p2 in nexts:
            if p2 is None or p2.pose in visited: continue
            visited.add(p2.pose)
            q.append((p2, path + [name]))
    return found


class Move(NamedTuple):
    path: List[str]
    target: Optional[Piece]

def find_best_move(grid:np.ndarray, piece:Optional[Piece], next_kind:Optional[int],
                   strategy, weights:Dict[str,float], drought:int=0) -> Move:
    if piece is None:
        return Move([], None)
    strategy = parse_strategy(strategy)
    # 井戸戦略でも積みすぎたら生存モードで評価
    if isinstance(strategy, Well) and max(column_heights(grid)) > DANGER_HEIGHT:
        strategy = Survival()
    lookahead = weights.get('lookaheadScore', DEFAULT_LOOKAHEAD)

    best_score, best = float('inf'), None
    for land in landings(grid, piece):
        score, after = score_placement(grid, land.piece, strategy, weights, drought)
        if next_kind is not None:
            score += lookahead*best_next_score(after, next_kind, strategy, weights, drought)
        if best is None or score < best_score:       # 同点なら先に見つけた方
            best_score, best = score, land
    if best is None:                                 # 着地候補なし
        return Move([DROP], None)                    # 保険: とりあえずハードドロップ
    return Move(best.path + [DROP], best.piece)


# ────────── ヒューリスティック AI ──────────
class HeuristicAI:
    def __init__(self, strategy='survival', w:Dict[str,float]=None):
        self.strategy = parse_strategy(strategy)
        name = 'survival' if isinstance(self.strategy, Survival) else 'right-well'
        self.w = dict(w if w is not None else PRESETS[name])

    def best_move(self, grid:np.ndarray, piece:Optional[Piece],
                  next_kind:Optional[int]=None, drought:int=0) -> Move:
        return find_best_move(as_grid(grid), piece, next_kind, self.strategy, self.w, drought)
