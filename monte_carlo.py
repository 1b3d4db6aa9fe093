"""
Monte Carlo Simulation

Re-runs the projection policy hundreds of times with a random return every
year, then asks: what's the RANGE of possible outcomes?

Identical inputs always produce identical output. The seed comes from a
canonical encoding of the inputs, and each path derives its own seed from its
index, so paths can run in any order (or in parallel) without changing a
single number.
"""

import logging
import math
import threading
from collections import Counter
from concurrent.futures import Future, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import List, Optional, Sequence, Tuple

from config import DEFAULT_NUM_SIMULATIONS
from fire_calculator import ProjectionContext, build_context, check_fire
from models import FireInputs, InvalidInputError, MonteCarloResult, PercentileBands

logger = logging.getLogger(__name__)

MASK32 = 0xFFFFFFFF

PERCENTILES = {
    'p10': 0.10,
    'p25': 0.25,
    'p50': 0.50,
    'p75': 0.75,
    'p90': 0.90,
}

DISTRIBUTIONS = ('normal', 'lognormal')


class SimulationCancelled(Exception):
    """Raised when a newer request supersedes a running batch."""


# =============================================================================
# RANDOM NUMBERS
# =============================================================================

def _imul(a: int, b: int) -> int:
    """32-bit integer multiply (low 32 bits only)."""
    return (a * b) & MASK32


class Mulberry32:
    """Small, fast 32-bit PRNG. Same seed, same sequence, on any platform."""

    def __init__(self, seed: int):
        self._state = seed & MASK32

    def random(self) -> float:
        """Uniform float in [0, 1)."""
        self._state = (self._state + 0x6D2B79F5) & MASK32
        s = self._state
        t = _imul(s ^ (s >> 15), 1 | s)
        t = ((t + _imul(t ^ (t >> 7), 61 | t)) & MASK32) ^ t
        return ((t ^ (t >> 14)) & MASK32) / 4294967296


class NormalSampler:
    """Standard normal draws via the Box-Muller transform."""

    def __init__(self, rng: Mulberry32):
        self._rng = rng

    def next(self) -> float:
        u = 0.0
        while u == 0.0:
            u = self._rng.random()
        v = 0.0
        while v == 0.0:
            v = self._rng.random()
        return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)


def hash_seed(text: str) -> int:
    """Hash a string into a 32-bit seed (31-multiplier string hash)."""
    h = 0
    for ch in text:
        h = (31 * h + ord(ch)) & MASK32
    return h


def input_seed(inputs: FireInputs, target_fire_age: Optional[int] = None) -> int:
    suffix = '' if target_fire_age is None else str(target_fire_age)
    return hash_seed(inputs.canonical_json() + '|' + suffix)


def path_seed(base_seed: int, index: int) -> int:
    """Seed for one path, depending only on the base seed and the path index."""
    h = (base_seed + (index + 1) * 0x9E3779B9) & MASK32
    h = _imul(h ^ (h >> 16), 0x85EBCA6B)
    h = _imul(h ^ (h >> 13), 0xC2B2AE35)
    return h ^ (h >> 16)


def draw_return(mean: float, volatility: float, z: float, distribution: str = 'normal') -> float:
    """
    Turn a standard normal draw into an annual return.

    'normal' is mean + volatility * z. 'lognormal' keeps the arithmetic mean
    while making losses beyond -100% impossible.
    """
    if distribution == 'lognormal':
        return math.exp(math.log(1 + mean) - volatility ** 2 / 2 + volatility * z) - 1
    return mean + volatility * z


# =============================================================================
# SINGLE PATH
# =============================================================================

def simulate_path(
    ctx: ProjectionContext,
    seed: int,
    target_fire_age: Optional[int] = None,
    distribution: str = 'normal'
) -> Tuple[List[float], int]:
    """
    Simulate one random future from today to life expectancy.

    Same policy as the deterministic projection, except each year's growth uses
    a random return. The FIRE check still uses the deterministic net return,
    so only the cash evolution is random. Portfolio values are floored at zero
    every year.

    Args:
        ctx: Precomputed projection context
        seed: Path seed
        target_fire_age: If set, retire the first year age >= target
        distribution: 'normal' or 'lognormal'

    Returns:
        (portfolio value per year, fire age). Fire age is life expectancy if
        retirement never started.
    """
    sampler = NormalSampler(Mulberry32(seed))

    portfolio = ctx.starting_portfolio
    custom = list(ctx.starting_custom_balances)
    living_expenses = ctx.base_annual_expenses
    retirement_expenses = 0.0
    fire_age = None
    path = []

    for i in range(ctx.years):
        age = ctx.current_age + i
        z = sampler.next()
        random_return = draw_return(ctx.mean_return, ctx.volatility, z, distribution)
        one_time = ctx.one_time_flow(i)

        if fire_age is None:
            portfolio = max(0.0, portfolio + portfolio * random_return
                            + ctx.annual_investment + one_time)
            custom = [
                max(0.0, b + b * draw_return(acct.mean_return, ctx.volatility, z, distribution)
                    + acct.annual_contribution)
                for b, acct in zip(custom, ctx.custom_accounts)
            ]
            total = portfolio + sum(custom)

            if target_fire_age is not None:
                retire = age >= target_fire_age
            else:
                retire = check_fire(ctx, i, total, living_expenses) is not None

            if retire:
                fire_age = age
                retirement_expenses = living_expenses * ctx.post_retirement_ratio
                portfolio, custom = total, []
            else:
                living_expenses *= (1 + ctx.inflation)
            path.append(total)
        else:
            spending = retirement_expenses + ctx.debt_schedule[i].payments
            withdrawal = max(0.0, spending - ctx.pension_income(i) - ctx.recurring_income(i))
            portfolio = max(0.0, portfolio + portfolio * random_return - withdrawal + one_time)
            retirement_expenses *= (1 + ctx.inflation)
            path.append(portfolio)

    return path, fire_age if fire_age is not None else ctx.life_expectancy


def _simulate_chunk(args) -> List[Tuple[int, List[float], int]]:
    """
    Run a block of paths.

    Top-level function so it's picklable for multiprocessing.
    args: (ctx, base_seed, indices, target_fire_age, distribution)
    """
    ctx, base_seed, indices, target_fire_age, distribution = args
    results = []
    for index in indices:
        path, fire_age = simulate_path(ctx, path_seed(base_seed, index), target_fire_age, distribution)
        results.append((index, path, fire_age))
    return results


# =============================================================================
# AGGREGATION
# =============================================================================

def aggregate(ctx: ProjectionContext, outcomes: Sequence[Tuple[List[float], int]],
              target_fire_age: Optional[int] = None) -> MonteCarloResult:
    """Percentile bands, success rate and FIRE-age distribution over all paths."""
    n = len(outcomes)
    bands = {name: [] for name in PERCENTILES}

    for year_idx in range(ctx.years):
        values = sorted(path[year_idx] for path, _ in outcomes)
        for name, p in PERCENTILES.items():
            bands[name].append(values[min(int(n * p), n - 1)])

    funded = sum(1 for path, _ in outcomes if path[-1] > 0)
    fire_ages = sorted(fire_age for _, fire_age in outcomes)
    counts = Counter(fire_ages)

    return MonteCarloResult(
        ages=[ctx.current_age + i for i in range(ctx.years)],
        percentiles=PercentileBands(**bands),
        success_rate=funded / n * 100,
        fire_age_distribution=[{'age': age, 'count': counts[age]} for age in sorted(counts)],
        median_fire_age=fire_ages[n // 2],
        num_simulations=n,
        target_fire_age=target_fire_age,
    )


# =============================================================================
# ENTRY POINT
# =============================================================================

def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise SimulationCancelled("Monte Carlo batch superseded")


def _run_serial(ctx, base_seed, num_simulations, target_fire_age, distribution, cancel_event):
    outcomes = []
    for index in range(num_simulations):
        _check_cancelled(cancel_event)
        outcomes.append(simulate_path(ctx, path_seed(base_seed, index), target_fire_age, distribution))
    return outcomes


def _run_parallel(ctx, base_seed, num_simulations, target_fire_age, distribution,
                  cancel_event, workers):
    chunk_size = max(1, math.ceil(num_simulations / (workers * 4)))
    chunks = [list(range(start, min(start + chunk_size, num_simulations)))
              for start in range(0, num_simulations, chunk_size)]

    outcomes = [None] * num_simulations
    ex = ProcessPoolExecutor(max_workers=workers)
    cancelled = False
    try:
        futures = [ex.submit(_simulate_chunk, (ctx, base_seed, chunk, target_fire_age, distribution))
                   for chunk in chunks]
        for future in as_completed(futures):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                break
            # Results land by path index, so completion order doesn't matter
            for index, path, fire_age in future.result():
                outcomes[index] = (path, fire_age)
    finally:
        # On cancel, drop queued chunks and return without waiting on running ones
        ex.shutdown(wait=not cancelled, cancel_futures=cancelled)
    if cancelled:
        raise SimulationCancelled("Monte Carlo batch superseded")
    return outcomes


def run_monte_carlo(
    inputs: FireInputs,
    num_simulations: int = DEFAULT_NUM_SIMULATIONS,
    target_fire_age: Optional[int] = None,
    distribution: str = 'normal',
    workers: int = 1,
    cancel_event: Optional[threading.Event] = None
) -> MonteCarloResult:
    """
    Run the Monte Carlo projection.

    Args:
        inputs: Household inputs
        num_simulations: Number of random paths
        target_fire_age: If set, every path retires at this age; the success
            rate then answers "if I retire at X, how often does the money last?"
        distribution: 'normal' or 'lognormal' annual returns
        workers: Worker processes (1 = run in this process)
        cancel_event: Set it to abandon the batch

    Returns:
        MonteCarloResult

    Raises:
        InvalidInputError: on bad inputs or arguments
        SimulationCancelled: if cancel_event was set before the batch finished
    """
    if num_simulations < 1:
        raise InvalidInputError("num_simulations must be at least 1")
    if distribution not in DISTRIBUTIONS:
        raise InvalidInputError(f"Unknown distribution: {distribution}")
    inputs.validate()
    if target_fire_age is not None and target_fire_age > inputs.personal_info.life_expectancy:
        raise InvalidInputError("target_fire_age is beyond life_expectancy")

    ctx = build_context(inputs)
    base_seed = input_seed(inputs, target_fire_age)

    if workers > 1:
        outcomes = _run_parallel(ctx, base_seed, num_simulations, target_fire_age,
                                 distribution, cancel_event, workers)
    else:
        outcomes = _run_serial(ctx, base_seed, num_simulations, target_fire_age,
                               distribution, cancel_event)

    return aggregate(ctx, outcomes, target_fire_age)


# =============================================================================
# BACKGROUND EXECUTION
# =============================================================================

class MonteCarloRunner:
    """
    Runs Monte Carlo batches off the calling thread.

    Each submit() supersedes the previous request: the running batch is asked
    to stop, and if it finishes anyway its result is thrown away. latest_result
    only ever holds the output of the newest request.
    """

    def __init__(self, workers: int = 1):
        self._workers = workers
        self._executor = ThreadPoolExecutor(max_workers=1)
        self._lock = threading.Lock()
        self._request_id = 0
        self._cancel_event: Optional[threading.Event] = None
        self.latest_result: Optional[MonteCarloResult] = None

    def submit(self, inputs: FireInputs, num_simulations: int = DEFAULT_NUM_SIMULATIONS,
               target_fire_age: Optional[int] = None, distribution: str = 'normal') -> Future:
        """Queue a batch. The future resolves to None if it gets superseded."""
        with self._lock:
            if self._cancel_event is not None:
                self._cancel_event.set()
            self._request_id += 1
            request_id = self._request_id
            cancel_event = threading.Event()
            self._cancel_event = cancel_event

        return self._executor.submit(self._run, request_id, cancel_event, inputs,
                                     num_simulations, target_fire_age, distribution)

    def _run(self, request_id, cancel_event, inputs, num_simulations,
             target_fire_age, distribution) -> Optional[MonteCarloResult]:
        try:
            result = run_monte_carlo(inputs, num_simulations, target_fire_age, distribution,
                                     workers=self._workers, cancel_event=cancel_event)
        except SimulationCancelled:
            logger.debug("Monte Carlo request %d cancelled", request_id)
            return None

        with self._lock:
            if request_id != self._request_id:
                logger.debug("Discarding superseded Monte Carlo request %d", request_id)
                return None
            self.latest_result = result
        return result

    def shutdown(self) -> None:
        with self._lock:
            if self._cancel_event is not None:
                self._cancel_event.set()
        self._executor.shutdown(wait=True)
