# ga_train.py – DEAP + multiprocessing で重みを進化（ベースライン 1 + 突然変異 N-1, 交叉なし）

from __future__ import annotations
import random, json, pathlib, multiprocessing as mp
from typing import Dict, Tuple
import numpy as np
from deap import base, creator, tools
from core import PRESETS, HeuristicAI                  # ← core.py から共通定義
from game import Game, piece_queue

import time

# ───────────────────────── パラメータ ─────────────────────────
POP, GEN        = 9, 8             # 個体数 (先頭はベースライン) と世代数
MUTATION_FACTOR = 0.2              # 各係数の最大変化率
LINE_TARGET     = 200              # ここまで消したら打ち切り
MAX_PIECES      = 1500             # 念のための上限
QUEUE_SIZE      = 10_000
STRATEGY        = 'right-well'
BEST_PATH       = pathlib.Path('best_weights.json')


# ───────────────────────── 突然変異 ─────────────────────────
def mutate_weights(base_w:Dict[str,float], factor:float=0.1, rng=random) -> Dict[str,float]:
    """
    各係数を base*(1+U[-f,f]) に揺らす。
      - 0 の係数は無効な項なので触らない
      - 負 (報酬) は f=factor/1.5 でペナルティより大きく動かさない
      - 符号が反転したら元の値に戻す (報酬/ペナルティの役割は不変)
    """
    if factor < 0: raise ValueError('factor must be >= 0')
    mutated = dict(base_w)
    for k, v in base_w.items():
        if v == 0: continue
        f = factor/1.5 if v < 0 else factor
        new = v*(1 + rng.uniform(-f, f))
        mutated[k] = v if v*new <= 0 else new
    return mutated


# ───────────────────────── 評価用シミュレータ ────────────────
def run_game(weights:Dict[str,float], queue, strategy:str=STRATEGY,
             line_target:int=LINE_TARGET, max_pieces:int=MAX_PIECES) -> Tuple[int,int,int]:
    """1 ゲーム回して (score, lines, pieces) を返す"""
    game = Game(queue)
    ai   = HeuristicAI(strategy, weights)
    while not game.game_over and game.lines < line_target and game.pieces < max_pieces:
        game.play_move(ai)
    return game.score, game.lines, game.pieces


def fitness(score:int, lines:int) -> float:
    # ライン 0 は最下位扱い
    return score/lines if lines > 0 else -1.0


# ───────────────────────── DEAP 準備 ─────────────────────────
creator.create('FitMax', base.Fitness, weights=(1.0,))
creator.create('Ind', dict, fitness=creator.FitMax)

tb = base.Toolbox()
tb.register('mutate', mutate_weights, factor=MUTATION_FACTOR)
tb.register('select', tools.selBest, k=1)

def evaluate(ind, queue, strategy=STRATEGY):
    score, lines, _ = run_game(dict(ind), queue, strategy)
    return (fitness(score, lines),)
tb.register('evaluate', evaluate)


def make_generation(baseline:Dict[str,float], size:int=POP):
    """0 番は無変異のベースライン, 残りは独立な突然変異"""
    pop = [creator.Ind(baseline)]
    pop += [creator.Ind(tb.mutate(baseline)) for _ in range(size-1)]
    return pop


def next_baseline(pop, baseline:Dict[str,float]) -> Dict[str,float]:
    """最良個体を次のベースラインに。全員ライン 0 ならそのまま"""
    best = tb.select(pop)[0]
    if best.fitness.values[0] <= -1.0:
        return baseline
    return dict(best)


def load_baseline(strategy:str=STRATEGY, path:pathlib.Path=BEST_PATH) -> Dict[str,float]:
    # 前回ベストがあれば初期ベースラインに注入
    if path.exists():
        try:
            data = json.loads(path.read_text())
            if isinstance(data, dict) and data:
                print(f'Seed baseline loaded from {path}')
                return {k: float(v) for k, v in data.items()}
        except (ValueError, OSError) as e:
            print(f'Warning: {path} load error ->', e)
    return dict(PRESETS[strategy])


# ───────────────────────── main ──────────────────────────────
def main(seed:int=0):
    baseline = load_baseline()
    with mp.Pool() as pool:
        for g in range(GEN):
            # 世代ごとに共通の出現列 (全個体が同じミノ列で勝負)
            queue = piece_queue(QUEUE_SIZE, seed=seed+g)
            pop   = make_generation(baseline)

            # ── 評価 ─────────────────────────
            jobs = [(dict(ind), queue, STRATEGY) for ind in pop]
            fits = pool.starmap(tb.evaluate, jobs)
            for ind, fit in zip(pop, fits):
                ind.fitness.values = fit

            # ── ロギング ─────────────────────
            vals = [f[0] for f in fits]
            best_now = tb.select(pop)[0]
            shown    = {k: round(v, 3) for k, v in best_now.items()}
            print(f'Gen {g:02d}: best {best_now.fitness.values[0]:.1f}, '
                  f'avg {np.mean(vals):.1f}  w={shown}')

            # ── ベースライン更新 (エリート 1 体のみ) ──
            new = next_baseline(pop, baseline)
            if new is baseline:
                print('All games failed to clear any lines. Keeping baseline.')
            baseline = new

    # ─── ベスト保存 ───────────────────
    BEST_PATH.write_text(json.dumps(baseline, indent=2))
    print(f'Saved → {BEST_PATH}')


if __name__ == '__main__':
    mp.freeze_support()          # Windows 用
    start_all = time.time()
    main()
    end_all = time.time()
    print(f"Total GA training time: {end_all - start_all:.1f} sec")
