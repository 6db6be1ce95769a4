from __future__ import annotations
import copy
import logging
import math
import numbers
import os
from dataclasses import asdict, dataclass, field, fields
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

try:  # Matplotlib is optional for non-plotting contexts
    import matplotlib.pyplot as plt  # type: ignore
except Exception:  # pragma: no cover
    plt = None  # type: ignore

logger = logging.getLogger("fundsim.engine")


# ---------------------------------------------------------------------------
# Economic constants
# ---------------------------------------------------------------------------
OPENING_BALANCE = 10_000.0

MARKETPLACE_FUND_SHARE = 0.60
LOGISTIC_FUND_SHARE = 0.25
SOLIDARITY_POOL_RATE = 0.15
SOLIDARITY_FUND_SHARE = 0.15

BASE_RATE_PER_DELIVERY = 5.0
SPEED_BONUS_PER_DELIVERY = 0.5
RELIABILITY_BONUS_PER_DELIVERY = 0.3
DAYS_PER_WEEK = 7
# (min weekly deliveries, bonus), highest tier first
WEEKLY_BONUS_TIERS: Tuple[Tuple[int, float], ...] = (
    (80, 100.0),
    (60, 60.0),
    (40, 30.0),
    (20, 10.0),
)

VARIATION_MEAN = 1.0
VARIATION_STD = 0.2
VARIATION_MIN = 0.5
VARIATION_MAX = 1.5


# ---------------------------------------------------------------------------
# Config + scenario helpers
# ---------------------------------------------------------------------------
_BASE_SCENARIO = {
    "marketplaceCommissionRate": 12,
    "logisticFeeBase": 0.75,
    "deliveriesPerDriver": 20,
    "simulationDays": 30,
}

SCENARIO_REGISTRY: Dict[str, Dict] = {
    "conservative": {
        **_BASE_SCENARIO,
        "dailyOrders": 800,
        "averageOrderValue": 45,
        "activeDeliverys": 40,
    },
    "realistic": {
        **_BASE_SCENARIO,
        "dailyOrders": 1000,
        "averageOrderValue": 50,
        "activeDeliverys": 50,
    },
    "optimistic": {
        **_BASE_SCENARIO,
        "dailyOrders": 1500,
        "averageOrderValue": 55,
        "activeDeliverys": 75,
    },
}

# camelCase key -> dataclass field
_FIELD_ALIASES: Dict[str, str] = {
    "dailyOrders": "daily_orders",
    "averageOrderValue": "average_order_value",
    "marketplaceCommissionRate": "marketplace_commission_rate",
    "logisticFeeBase": "logistic_fee_base",
    "activeDeliverys": "active_deliverys",
    "deliveriesPerDriver": "deliveries_per_driver",
    "simulationDays": "simulation_days",
}


def deep_merge(base: Dict, overrides: Optional[Dict]) -> Dict:
    """Recursive copy + merge."""
    if not overrides:
        return copy.deepcopy(base)
    out = copy.deepcopy(base)
    for key, val in overrides.items():
        if isinstance(val, dict) and isinstance(out.get(key), dict):
            out[key] = deep_merge(out[key], val)
        else:
            out[key] = copy.deepcopy(val)
    return out


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class SimulationParameters:
    daily_orders: float
    average_order_value: float
    marketplace_commission_rate: float
    logistic_fee_base: float
    active_deliverys: int
    deliveries_per_driver: int
    simulation_days: int

    @classmethod
    def from_dict(cls, data: Dict) -> "SimulationParameters":
        """Build parameters from camelCase or snake_case keys.

        Keys that are not parameters (engine flags, comments) are ignored.
        """

        if not isinstance(data, dict):
            raise TypeError("Parameters must be a dictionary")
        values = {}
        for key, val in data.items():
            name = _FIELD_ALIASES.get(key, key)
            if name in _FIELD_ALIASES.values():
                values[name] = val
        for name in _FIELD_ALIASES.values():
            if name not in values:
                raise KeyError(f"Missing parameter '{name}'")
        params = cls(**values)
        validate_parameters(params)
        return params

    def to_dict(self) -> Dict[str, float]:
        snake = asdict(self)
        return {camel: snake[name] for camel, name in _FIELD_ALIASES.items()}


@dataclass
class DayResult:
    day: int
    orders: int
    fund_contributions: float
    delivery_payments: float
    fund_balance: float
    profitability: float
    governance_action: Optional[str] = None
    adjustments: Optional[Dict[str, object]] = None

    def to_dict(self) -> Dict[str, object]:
        out: Dict[str, object] = {
            "day": self.day,
            "orders": self.orders,
            "fundContributions": self.fund_contributions,
            "deliveryPayments": self.delivery_payments,
            "fundBalance": self.fund_balance,
            "profitability": self.profitability,
        }
        if self.governance_action:
            out["governanceAction"] = self.governance_action
            out["adjustments"] = dict(self.adjustments or {})
        return out


@dataclass(frozen=True)
class FinancialMetrics:
    total_contributions: float = 0.0
    total_payments: float = 0.0
    net_balance: float = 0.0
    average_roi: float = 0.0
    break_even_day: int = 0
    peak_deficit: float = 0.0
    peak_surplus: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "totalContributions": self.total_contributions,
            "totalPayments": self.total_payments,
            "netBalance": self.net_balance,
            "averageROI": self.average_roi,
            "breakEvenDay": self.break_even_day,
            "peakDeficit": self.peak_deficit,
            "peakSurplus": self.peak_surplus,
        }


@dataclass(frozen=True)
class GovernanceRules:
    low_threshold: float = 5_000.0
    critical_threshold: float = 2_000.0
    rate_increase: float = 1.2
    emergency_increase: float = 1.5


@dataclass
class SimulationOutput:
    results: List[DayResult]
    metrics: FinancialMetrics
    recommendations: List[str] = field(default_factory=list)


DEFAULT_COLUMNS = [
    "Day",
    "Orders",
    "FundContributions",
    "DeliveryPayments",
    "FundBalance",
    "Profitability",
    "GovernanceAction",
    "LogisticFee",
]


def _is_number(val: object) -> bool:
    return isinstance(val, numbers.Real) and not isinstance(val, bool)


def validate_parameters(params: SimulationParameters) -> None:
    """Reject parameter records the day loop cannot run on.

    Raises ``TypeError`` for non-numeric fields and ``ValueError`` for
    non-finite, negative or out-of-range values.
    """

    for f in fields(params):
        val = getattr(params, f.name)
        if not _is_number(val):
            raise TypeError(f"Parameter '{f.name}' must be numeric, got {type(val).__name__}")
        if not math.isfinite(val):
            raise ValueError(f"Parameter '{f.name}' must be finite")
        if val < 0:
            raise ValueError(f"Parameter '{f.name}' must be non-negative")

    if params.daily_orders <= 0:
        raise ValueError("daily_orders must be positive")
    if params.deliveries_per_driver <= 0:
        raise ValueError("deliveries_per_driver must be positive")
    if int(params.deliveries_per_driver) != params.deliveries_per_driver:
        raise ValueError("deliveries_per_driver must be a whole number")
    if params.marketplace_commission_rate > 100:
        raise ValueError("marketplace_commission_rate must be a percentage in [0, 100]")
    if int(params.simulation_days) != params.simulation_days:
        raise ValueError("simulation_days must be a whole number")
    if params.simulation_days < 1:
        raise ValueError("simulation_days must be at least 1")


def apply_preset(preset_name: str, overrides: Optional[Dict] = None) -> SimulationParameters:
    base = SCENARIO_REGISTRY.get(preset_name)
    if base is None:
        raise KeyError(f"Scenario preset '{preset_name}' not found")
    return SimulationParameters.from_dict(deep_merge(base, overrides))


# ---------------------------------------------------------------------------
# Demand noise
# ---------------------------------------------------------------------------

def _rng(seed: Optional[int]) -> np.random.Generator:
    return np.random.default_rng(None if seed is None else int(seed))


def daily_variation(uniform: Callable[[], float]) -> float:
    """Box–Muller draw around 1.0 (sd 0.2), clipped to [0.5, 1.5].

    ``uniform`` must return floats in [0, 1). The first sample is reflected
    to (0, 1] so the logarithm is always defined.
    """

    u1 = 1.0 - uniform()
    u2 = uniform()
    z0 = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return max(VARIATION_MIN, min(VARIATION_MAX, VARIATION_MEAN + VARIATION_STD * z0))


def realized_orders(daily_orders: float, multiplier: float) -> int:
    return max(1, int(math.floor(daily_orders * multiplier)))


# ---------------------------------------------------------------------------
# Contribution & payout formulas
# ---------------------------------------------------------------------------

def contribution_per_order(average_order_value: float, commission_rate: float, logistic_fee: float) -> float:
    commission = average_order_value * (commission_rate / 100)
    marketplace = commission * MARKETPLACE_FUND_SHARE
    logistic = logistic_fee * LOGISTIC_FUND_SHARE
    solidarity_pool = commission * SOLIDARITY_POOL_RATE
    solidarity = solidarity_pool * SOLIDARITY_FUND_SHARE
    return marketplace + logistic + solidarity


def fund_contributions(orders: int, average_order_value: float, commission_rate: float, logistic_fee: float) -> float:
    return contribution_per_order(average_order_value, commission_rate, logistic_fee) * orders


def weekly_bonus(weekly_deliveries: float) -> float:
    for minimum, bonus in WEEKLY_BONUS_TIERS:
        if weekly_deliveries >= minimum:
            return bonus
    return 0.0


def performance_bonus(deliveries: int) -> float:
    speed = deliveries * SPEED_BONUS_PER_DELIVERY
    reliability = deliveries * RELIABILITY_BONUS_PER_DELIVERY
    return speed + reliability


def shift_payment(deliveries: int) -> float:
    base = deliveries * BASE_RATE_PER_DELIVERY
    return base + weekly_bonus(deliveries * DAYS_PER_WEEK) + performance_bonus(deliveries)


def delivery_payments(orders: int, deliveries_per_driver: int) -> float:
    shifts = math.ceil(orders / deliveries_per_driver)
    total = 0.0
    for i in range(shifts):
        deliveries = min(deliveries_per_driver, orders - i * deliveries_per_driver)
        total += shift_payment(deliveries)
    return total


def profitability(contributions: float, payments: float) -> float:
    if contributions == 0:
        return 0.0
    return (contributions - payments) / contributions * 100


# ---------------------------------------------------------------------------
# Governance
# ---------------------------------------------------------------------------

def governance_decision(
    balance: float,
    logistic_fee: float,
    rules: GovernanceRules = GovernanceRules(),
) -> Optional[Tuple[str, float, str]]:
    """Return ``(action, new_fee, reason)`` for a balance, or ``None``."""

    if balance < rules.critical_threshold:
        return "emergency_rate_increase", logistic_fee * rules.emergency_increase, "Emergency mode activated"
    if balance < rules.low_threshold:
        return "rate_increase", logistic_fee * rules.rate_increase, "Low balance detected"
    return None


# ---------------------------------------------------------------------------
# Metrics & recommendations
# ---------------------------------------------------------------------------

def results_to_frame(results: Sequence[DayResult]) -> pd.DataFrame:
    rows = []
    for r in results:
        rows.append({
            "Day": r.day,
            "Orders": r.orders,
            "FundContributions": r.fund_contributions,
            "DeliveryPayments": r.delivery_payments,
            "FundBalance": r.fund_balance,
            "Profitability": r.profitability,
            "GovernanceAction": r.governance_action or "",
            "LogisticFee": (r.adjustments or {}).get("logisticFee", np.nan),
        })
    return pd.DataFrame(rows, columns=DEFAULT_COLUMNS)


def compute_metrics(results: Sequence[DayResult]) -> FinancialMetrics:
    if not results:
        return FinancialMetrics()
    df = results_to_frame(results)
    total_contributions = float(df["FundContributions"].sum())
    total_payments = float(df["DeliveryPayments"].sum())
    net_balance = total_contributions - total_payments
    average_roi = net_balance / total_contributions * 100 if total_contributions > 0 else 0.0

    solvent_days = df.loc[df["FundBalance"] >= 0, "Day"]
    break_even_day = int(solvent_days.iloc[0]) if not solvent_days.empty else 0

    return FinancialMetrics(
        total_contributions=total_contributions,
        total_payments=total_payments,
        net_balance=net_balance,
        average_roi=average_roi,
        break_even_day=break_even_day,
        peak_deficit=float(df["FundBalance"].min()),
        peak_surplus=float(df["FundBalance"].max()),
    )


def generate_recommendations(metrics: FinancialMetrics) -> List[str]:
    recommendations: List[str] = []

    if metrics.average_roi < -20:
        recommendations.append("CRITICAL: deeply negative profitability. Review the cost structure immediately.")
    elif metrics.average_roi < 0:
        recommendations.append("WARNING: the fund runs a deficit. Consider adjusting fees or bonuses.")
    elif metrics.average_roi > 20:
        recommendations.append("EXCELLENT: the fund is highly profitable. Consider distributing the surplus.")

    if metrics.peak_deficit < -10_000:
        recommendations.append("RESERVE FUND: an emergency reserve of at least $20,000 is required.")

    if metrics.break_even_day > 30:
        recommendations.append("EQUILIBRIUM TIME: the fund takes more than 30 days to reach equilibrium.")

    if metrics.peak_surplus > 50_000:
        recommendations.append("DISTRIBUTION: consider paying out the surplus as additional driver bonuses.")

    return recommendations


def format_report(
    parameters: SimulationParameters,
    final_balance: float,
    metrics: FinancialMetrics,
    recommendations: Iterable[str],
) -> str:
    if metrics.break_even_day:
        break_even = f"- **Break-even day**: {metrics.break_even_day}"
    else:
        break_even = "- **Status**: not reached within the simulated period"
    recs = "\n".join(f"- {r}" for r in recommendations) or "- No action required."

    return f"""# Financial Simulation Report

## Executive Summary
- **Simulated period**: {parameters.simulation_days} days
- **Average daily orders**: {parameters.daily_orders}
- **Final fund balance**: ${final_balance:,.2f}
- **Average ROI**: {metrics.average_roi:.2f}%

## Financial Metrics
- **Total contributions**: ${metrics.total_contributions:,.2f}
- **Total payments**: ${metrics.total_payments:,.2f}
- **Net balance**: ${metrics.net_balance:,.2f}
- **Peak deficit**: ${metrics.peak_deficit:,.2f}
- **Peak surplus**: ${metrics.peak_surplus:,.2f}

## Break-even
{break_even}

## Recommendations
{recs}

## Next Steps
1. Set up real-time monitoring of the fund
2. Configure automatic governance
3. Establish a reserve fund
4. Launch a pilot phase
5. Scale up gradually
"""


# ---------------------------------------------------------------------------
# Core simulation
# ---------------------------------------------------------------------------

class SimulationEngine:
    """Day-stepped solidarity fund model.

    Parameters
    ----------
    parameters : SimulationParameters
        Input record; never mutated.
    seed : int | None
        Seed for the default numpy uniform source. Each ``run`` reseeds, so
        repeated runs with a seed are identical.
    uniform : callable | None
        Injected ``() -> float`` source on [0, 1). Overrides ``seed``.
    variation : bool
        When False the daily multiplier is fixed at 1.0.
    governance : bool
        Enables the low-balance fee controller.
    opening_balance : float
        Day-0 fund balance.
    """

    def __init__(
        self,
        parameters: SimulationParameters,
        *,
        seed: Optional[int] = None,
        uniform: Optional[Callable[[], float]] = None,
        variation: bool = True,
        governance: bool = True,
        opening_balance: float = OPENING_BALANCE,
        rules: GovernanceRules = GovernanceRules(),
    ) -> None:
        self.parameters = parameters
        self.seed = seed
        self.uniform = uniform
        self.variation = variation
        self.governance = governance
        self.opening_balance = float(opening_balance)
        self.rules = rules

        self.results: List[DayResult] = []
        self.fund_balance = self.opening_balance
        self.runtime_logistic_fee = parameters.logistic_fee_base
        self._output: Optional[SimulationOutput] = None

    def _reset(self) -> Callable[[], float]:
        self.results = []
        self.fund_balance = self.opening_balance
        self.runtime_logistic_fee = float(self.parameters.logistic_fee_base)
        self._output = None
        if self.uniform is not None:
            return self.uniform
        return _rng(self.seed).random

    def run(self) -> SimulationOutput:
        validate_parameters(self.parameters)
        if not math.isfinite(self.opening_balance):
            raise ValueError("opening_balance must be finite")
        uniform = self._reset()
        days = int(self.parameters.simulation_days)
        logger.info("starting fund simulation: %d days, %s daily orders", days, self.parameters.daily_orders)

        for day in range(1, days + 1):
            result = self.simulate_day(day, uniform)
            self.results.append(result)
            if self.governance and result.fund_balance < self.rules.low_threshold:
                self.apply_governance(result)

        metrics = compute_metrics(self.results)
        recommendations = generate_recommendations(metrics)
        self._output = SimulationOutput(list(self.results), metrics, recommendations)
        logger.info(
            "fund simulation complete: final balance %.2f, ROI %.2f%%",
            self.fund_balance,
            metrics.average_roi,
        )
        return self._output

    def simulate_day(self, day: int, uniform: Callable[[], float]) -> DayResult:
        p = self.parameters
        multiplier = daily_variation(uniform) if self.variation else 1.0
        orders = realized_orders(p.daily_orders, multiplier)

        contributions = fund_contributions(
            orders, p.average_order_value, p.marketplace_commission_rate, self.runtime_logistic_fee
        )
        payments = delivery_payments(orders, int(p.deliveries_per_driver))
        self.fund_balance += contributions - payments

        return DayResult(
            day=day,
            orders=orders,
            fund_contributions=contributions,
            delivery_payments=payments,
            fund_balance=self.fund_balance,
            profitability=profitability(contributions, payments),
        )

    def apply_governance(self, result: DayResult) -> None:
        decision = governance_decision(result.fund_balance, self.runtime_logistic_fee, self.rules)
        if decision is None:
            return
        action, new_fee, reason = decision
        self.runtime_logistic_fee = new_fee
        result.governance_action = action
        result.adjustments = {"logisticFee": new_fee, "reason": reason}
        level = logging.WARNING if action == "emergency_rate_increase" else logging.INFO
        logger.log(level, "day %d: %s (balance %.2f, logistic fee -> %.4f)", result.day, action, result.fund_balance, new_fee)

    def _require_run(self) -> SimulationOutput:
        if self._output is None:
            raise RuntimeError("No simulation has been run yet")
        return self._output

    def report(self) -> str:
        out = self._require_run()
        return format_report(self.parameters, self.fund_balance, out.metrics, out.recommendations)

    def export(self) -> Dict[str, object]:
        out = self._require_run()
        return {
            "parameters": self.parameters.to_dict(),
            "results": [r.to_dict() for r in out.results],
            "metrics": out.metrics.to_dict(),
            "recommendations": list(out.recommendations),
        }

    def results_frame(self) -> pd.DataFrame:
        return results_to_frame(self._require_run().results)


def simulate(
    parameters: SimulationParameters,
    **engine_kwargs,
) -> SimulationOutput:
    """Run one simulation on a fresh engine and return its output."""
    return SimulationEngine(parameters, **engine_kwargs).run()


# ---------------------------------------------------------------------------
# Monte Carlo ensemble
# ---------------------------------------------------------------------------

def _cvar(series: pd.Series | Iterable[float], alpha: float) -> float:
    """Mean of the lower ``alpha`` tail (expected shortfall)."""
    data = pd.Series(series).dropna()
    if data.empty:
        return float("nan")
    alpha = min(max(alpha, 0.0), 1.0)
    cutoff = data.quantile(alpha)
    tail_vals = data[data <= cutoff]
    if tail_vals.empty:
        return float(cutoff)
    return float(tail_vals.mean())


def _draw_seeds(rng: np.random.Generator, n_runs: int) -> np.ndarray:
    if n_runs <= 0:
        raise ValueError("n_runs must be positive")
    return rng.integers(low=0, high=2**32 - 1, size=n_runs, dtype=np.uint32)


def _metrics_row(output: SimulationOutput) -> Dict[str, float]:
    m = output.metrics
    return {
        "TotalContributions": m.total_contributions,
        "TotalPayments": m.total_payments,
        "NetBalance": m.net_balance,
        "AverageROI": m.average_roi,
        "BreakEvenDay": m.break_even_day,
        "PeakDeficit": m.peak_deficit,
        "PeakSurplus": m.peak_surplus,
        "FinalBalance": output.results[-1].fund_balance if output.results else 0.0,
        "GovernanceActions": sum(1 for r in output.results if r.governance_action),
    }


def run_monte_carlo(
    parameters: SimulationParameters,
    *,
    n_runs: int = 100,
    base_seed: Optional[int] = None,
    batch_size: int = 32,
    progress_cb: Optional[Callable[[int, int], None]] = None,
    **engine_kwargs,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Execute independent seeded replications and summarise their metrics.

    Parameters
    ----------
    parameters : SimulationParameters
        Shared across every replication.
    n_runs : int, optional
        Number of replications (default 100).
    base_seed : int | None, optional
        Seed for drawing one seed per replication. ``None`` leaves the
        ensemble non-deterministic.
    engine_kwargs
        Forwarded to ``SimulationEngine`` (``governance``, ``opening_balance``...).

    Returns
    -------
    tuple(DataFrame, DataFrame)
        Per-run metrics, then aggregated statistics (mean, std, quantiles
        and a ``risk`` row).
    """

    engine_kwargs.pop("seed", None)
    engine_kwargs.pop("uniform", None)
    rng = _rng(base_seed)
    seeds = _draw_seeds(rng, n_runs)
    rows: List[Dict[str, float]] = []

    total = len(seeds)
    batch_size = max(1, int(batch_size))
    for start in range(0, total, batch_size):
        end = min(total, start + batch_size)
        if progress_cb:
            try:
                progress_cb(start, total)
            except Exception:
                logger.debug("progress callback failed", exc_info=True)
        for idx, seed in enumerate(seeds[start:end], start=start + 1):
            output = simulate(parameters, seed=int(seed), **engine_kwargs)
            row = _metrics_row(output)
            row.update({"run": idx, "seed": int(seed)})
            rows.append(row)

    if progress_cb:
        try:
            progress_cb(total, total)
        except Exception:
            logger.debug("progress callback failed", exc_info=True)

    run_df = pd.DataFrame(rows)
    return run_df, summarize_metrics(run_df)


def summarize_metrics(runs_df: pd.DataFrame) -> pd.DataFrame:
    """Aggregate per-run metrics into mean/std/quantiles and risk indicators."""

    if runs_df.empty:
        return pd.DataFrame()

    numeric_cols = [
        c for c in runs_df.columns
        if c not in {"run", "seed"} and pd.api.types.is_numeric_dtype(runs_df[c])
    ]
    agg = runs_df[numeric_cols].agg(["mean", "std", "min", "max"])
    quantiles = runs_df[numeric_cols].quantile([0.05, 0.5, 0.95]).rename(index={0.05: "q05", 0.5: "q50", 0.95: "q95"})
    summary = pd.concat([agg, quantiles])

    extras = {}
    if "AverageROI" in runs_df.columns:
        extras["ROI_prob_negative"] = (runs_df["AverageROI"] < 0).mean()
        extras["ROI_cvar05"] = _cvar(runs_df["AverageROI"], alpha=0.05)
    if "PeakDeficit" in runs_df.columns:
        extras["Deficit_prob_negative"] = (runs_df["PeakDeficit"] < 0).mean()
    if extras:
        summary = pd.concat([summary, pd.DataFrame(extras, index=["risk"])])

    summary = summary.reset_index().rename(columns={"index": "stat"})
    return summary


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------

def ensure_dir(path: str) -> str:
    """Create ``path`` (and parents) if missing; return it unchanged."""
    if path:
        os.makedirs(path, exist_ok=True)
    return path


def _require_matplotlib() -> None:
    if plt is None:
        raise RuntimeError("matplotlib is required for plotting but is not available")


def save_balance_plot(df: pd.DataFrame, title: str, out_png: str) -> None:
    _require_matplotlib()
    plt.figure(figsize=(10, 4))
    plt.plot(df["Day"], df["FundBalance"], lw=2, label="Fund balance")
    actions = df[df["GovernanceAction"] != ""]
    if not actions.empty:
        plt.scatter(actions["Day"], actions["FundBalance"], marker="^", s=60, color="tab:red", label="Governance action")
    plt.axhline(0, color="grey", lw=1, linestyle="--")
    plt.title(title)
    plt.xlabel("Day")
    plt.ylabel("Balance")
    plt.legend()
    plt.tight_layout()
    ensure_dir(os.path.dirname(out_png))
    plt.savefig(out_png, dpi=160)
    plt.close()


__all__ = [
    "OPENING_BALANCE",
    "SCENARIO_REGISTRY",
    "WEEKLY_BONUS_TIERS",
    "SimulationParameters",
    "DayResult",
    "FinancialMetrics",
    "GovernanceRules",
    "SimulationOutput",
    "SimulationEngine",
    "simulate",
    "validate_parameters",
    "apply_preset",
    "deep_merge",
    "daily_variation",
    "realized_orders",
    "contribution_per_order",
    "fund_contributions",
    "weekly_bonus",
    "performance_bonus",
    "shift_payment",
    "delivery_payments",
    "profitability",
    "governance_decision",
    "results_to_frame",
    "compute_metrics",
    "generate_recommendations",
    "format_report",
    "run_monte_carlo",
    "summarize_metrics",
    "ensure_dir",
    "save_balance_plot",
]
