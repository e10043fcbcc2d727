# game.py – 描画なしのゲーム進行 (出現 / 移動 / 固定 / ライン消去 / 得点 / I ミノ干ばつ)
from __future__ import annotations
import random
from typing import List, Optional

from core import (KINDS, I, LEFT, RIGHT, DOWN, CW, CCW, DROP,
                  Piece, Move, empty_grid, spawn_piece, collides, drop_row,
                  lock, clear_lines, rotate, HeuristicAI)

LINE_SCORES = {1: 40, 2: 100, 3: 300, 4: 1200}     # × (level+1)


# 7 種シャッフルバッグを length 個ぶん並べる
def piece_queue(length:int, seed:int=0) -> List[int]:
    rnd = random.Random(seed)
    queue: List[int] = []
    while len(queue) < length:
        bag = list(range(len(KINDS))); rnd.shuffle(bag)
        queue += bag
    return queue[:length]


class Game:
    def __init__(self, queue:List[int], start_level:int=0):
        if not queue: raise ValueError('piece queue is empty')
        self.queue = list(queue)
        self.idx   = 0
        self.grid  = empty_grid()
        self.next_kind: Optional[int] = self.queue[0]
        self.current:   Optional[Piece] = None
        self.score = self.lines = 0
        self.level = start_level
        self.level_up = start_level*10 + 10
        self.drought = 0
        self.pieces  = 0
        self.soft_points = 0
        self.last_cleared = 0
        self.game_over = False
        self.spawn()

    # 次ミノを出す。出現位置が詰まっていたらゲームオーバー
    def spawn(self):
        self.idx = (self.idx + 1) % len(self.queue)
        p = spawn_piece(self.next_kind)
        if collides(self.grid, p):
            self.game_over = True
            self.current = None
            return
        self.current = p
        self.next_kind = self.queue[self.idx]

    # ── 移動/回転/ドロップ ─────────────────────
    def side(self, dx:int):
        if self.current and not collides(self.grid, self.current, dx, 0):
            self.current = self.current.moved(dx=dx)

    def soft(self):
        if self.current and not collides(self.grid, self.current, 0, 1):
            self.current = self.current.moved(dy=1)
            self.soft_points += 1

    def turn(self, d:int):
        if not self.current: return
        p = rotate(self.grid, self.current, d)
        if p is not None: self.current = p

    def hard(self):
        if not self.current: return
        y = drop_row(self.grid, self.current)
        self.score += (y - self.current.y)*2
        self.current = self.current._replace(y=y)
        self._lock()

    def _lock(self):
        p = self.current
        self.score += self.soft_points; self.soft_points = 0
        self.drought += 1
        self.grid, cleared = clear_lines(lock(self.grid, p))
        self.pieces += 1
        self.last_cleared = cleared
        if cleared:
            if p.kind == I: self.drought = 0        # I ミノが消したらリセット
            self.score += LINE_SCORES[cleared]*(self.level+1)
            self.lines += cleared
            if self.lines >= self.level_up:
                self.level += 1
                self.level_up += 10
        self.spawn()

    def apply(self, action:str):
        if self.game_over: return
        if   action == LEFT:  self.side(-1)
        elif action == RIGHT: self.side(1)
        elif action == DOWN:  self.soft()
        elif action == CW:    self.turn(1)
        elif action == CCW:   self.turn(-1)
        elif action == DROP:  self.hard()
        else: raise ValueError(f'unknown action: {action!r}')

    # AI に 1 手考えさせて最後 (ハードドロップ) まで実行
    def play_move(self, ai:HeuristicAI) -> Move:
        move = ai.best_move(self.grid, self.current, self.next_kind, self.drought)
        for a in move.path:
            self.apply(a)
        return move
