# gui.py – pygame AI バトル (左: survival / 右: right-well, 同じミノ列)
from __future__ import annotations
import json, pathlib, random, pygame as pg

from core import (COLS, ROWS, HIDDEN_ROWS, KINDS, PIECE_SHAPES,
                  SURVIVAL_WEIGHTS, WELL_WEIGHTS, Well, HeuristicAI, drop_row)
from game import Game, piece_queue


BLOCK, FPS = 24, 60
VISIBLE    = ROWS - HIDDEN_ROWS
PANEL_W    = 7                                   # 盤面右の情報欄 (ブロック数)
COLORS = {
    'I': (0,255,255), 'O': (255,255,0), 'T': (128,0,128),
    'S': (0,255,0),   'Z': (255,0,0),   'J': (0,0,255),
    'L': (255,165,0), 'G': (90,90,90),
}

# ── GA 重み読込 (右側は学習済みがあればそれを使う) ─────────
p = pathlib.Path('best_weights.json')
trained = json.loads(p.read_text()) if p.exists() else WELL_WEIGHTS
PLAYERS = [('survival', SURVIVAL_WEIGHTS), ('right-well', trained)]


# ───────────────── Player (ゲーム + AI + 実行中の手順) ─────────
class Player:
    def __init__(self, strategy:str, weights, queue):
        self.ai    = HeuristicAI(strategy, weights)
        self.game  = Game(queue)
        self.plan: list[str] = []

    def step(self):
        """1 フレームに 1 アクション。手順が尽きたら次の手を考える"""
        g = self.game
        if g.game_over: return
        if not self.plan:
            self.plan = list(self.ai.best_move(g.grid, g.current, g.next_kind, g.drought).path)
        g.apply(self.plan.pop(0))


# ───────────────── Renderer ─────────────────────
class Renderer:
    def __init__(self, players):
        self.players = players
        self.board_w = BLOCK*(COLS+PANEL_W)
        w = self.board_w*len(players); h = BLOCK*(VISIBLE+2)
        self.sc = pg.display.set_mode((w,h)); pg.display.set_caption('Tetris AI Battle')
        self.font = pg.font.SysFont('consolas', 18)

    def _cell(self, ox, x, y, c, a=255):
        if HIDDEN_ROWS <= y < ROWS:                  # 隠し行は描かない
            r = pg.Rect(ox+x*BLOCK, (y-HIDDEN_ROWS+1)*BLOCK, BLOCK, BLOCK)
            s = pg.Surface((BLOCK-1,BLOCK-1)); s.fill(c); s.set_alpha(a)
            self.sc.blit(s, (r.x+1, r.y+1))

    def _mini(self, k, ox, oy):
        for dx, dy in PIECE_SHAPES[k][0]:
            pg.draw.rect(self.sc, COLORS[KINDS[k]],
                         (ox+dx*BLOCK//2, oy+dy*BLOCK//2, BLOCK//2, BLOCK//2))

    def _text(self, s, x, y):
        self.sc.blit(self.font.render(s, True, (200,200,200)), (x, y))

    def _board(self, i, pl:Player):
        g, ox = pl.game, i*self.board_w
        pg.draw.rect(self.sc, (40,40,40), (ox, BLOCK, BLOCK*COLS, BLOCK*VISIBLE))

        # 固定ブロック
        for y, row in enumerate(g.grid):
            for x, c in enumerate(row):
                if c: self._cell(ox, x, y, COLORS[KINDS[c-1]])

        if g.current is not None:
            # ゴースト
            gy = drop_row(g.grid, g.current)
            for x, y in g.current.cells(dy=gy-g.current.y):
                self._cell(ox, x, y, COLORS['G'], 80)
            # 現在ミノ
            for x, y in g.current.cells():
                self._cell(ox, x, y, COLORS[KINDS[g.current.kind]])

        # 情報欄
        bx = ox + BLOCK*(COLS+1)
        name = 'WELL' if isinstance(pl.ai.strategy, Well) else 'SURVIVAL'
        self._text(name, bx, BLOCK)
        self._text('NEXT', bx, BLOCK*2)
        if g.next_kind is not None: self._mini(g.next_kind, bx, BLOCK*3)
        self._text(f'SCORE {g.score}', bx, BLOCK*6)
        self._text(f'LINES {g.lines}', bx, BLOCK*7)
        self._text(f'LEVEL {g.level}', bx, BLOCK*8)
        if g.last_cleared: self._text(f'CLEAR x{g.last_cleared}', bx, BLOCK*10)
        if isinstance(pl.ai.strategy, Well):
            self._text(f'DROUGHT {g.drought}', bx, BLOCK*9)
        if g.game_over: self._text('GAME OVER', bx, BLOCK*11)

    def draw(self):
        self.sc.fill((0,0,0))
        for i, pl in enumerate(self.players): self._board(i, pl)
        pg.display.flip()

# ─────────────────── main ───────────────────────
def main(seed:int|None=None):
    queue = piece_queue(10_000, seed if seed is not None else random.randrange(1 << 30))
    players = [Player(s, w, queue) for s, w in PLAYERS]
    pg.init(); clock = pg.time.Clock()
    rndr = Renderer(players)
    running = True
    while running:
        for e in pg.event.get():
            if e.type == pg.QUIT: running = False
            if e.type == pg.KEYDOWN and e.key == pg.K_ESCAPE: running = False
        if all(pl.game.game_over for pl in players): running = False
        for pl in players: pl.step()
        rndr.draw()
        clock.tick(FPS)
    for (s, _), pl in zip(PLAYERS, players):
        print(f'{s}: score {pl.game.score}, lines {pl.game.lines}, pieces {pl.game.pieces}')
    pg.quit()

if __name__=='__main__':
    main()
