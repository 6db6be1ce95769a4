from __future__ import annotations
"""Public simulation API.

Re-exports the core model from ``fund_core`` and adds the config-driven
helpers used by the CLI and the dashboard.
"""

from typing import Dict, Optional, Tuple, Union

import pandas as pd

from fund_core import (
    OPENING_BALANCE,
    SCENARIO_REGISTRY,
    DayResult,
    FinancialMetrics,
    GovernanceRules,
    SimulationEngine,
    SimulationOutput,
    SimulationParameters,
    apply_preset,
    compute_metrics,
    daily_variation,
    deep_merge,
    delivery_payments,
    ensure_dir,
    fund_contributions,
    generate_recommendations,
    results_to_frame,
    run_monte_carlo as _run_monte_carlo,
    save_balance_plot,
    simulate,
    summarize_metrics,
    validate_parameters,
    weekly_bonus,
)

# top-level config key -> SimulationEngine keyword
_ENGINE_OPTIONS = {
    "seed": "seed",
    "variation": "variation",
    "governance": "governance",
    "openingBalance": "opening_balance",
    "opening_balance": "opening_balance",
}

DEFAULT_SCENARIO = "realistic"


def engine_options(cfg: Dict) -> Dict[str, object]:
    """Pick engine flags out of a config dictionary."""
    opts: Dict[str, object] = {}
    for key, kwarg in _ENGINE_OPTIONS.items():
        if key in cfg and cfg[key] is not None:
            opts[kwarg] = cfg[key]
    if "variation" in opts:
        opts["variation"] = bool(opts["variation"])
    if "governance" in opts:
        opts["governance"] = bool(opts["governance"])
    if "seed" in opts:
        opts["seed"] = int(opts["seed"])
    if "opening_balance" in opts:
        opts["opening_balance"] = float(opts["opening_balance"])
    return opts


def load_config(cfg: Optional[Dict] = None) -> Tuple[SimulationParameters, Dict[str, object]]:
    """Resolve a config dict into parameters and engine keyword arguments.

    The dict is merged over the preset named by its ``scenario`` key
    (``realistic`` when absent), so partial configs are accepted.
    """

    if cfg is not None and not isinstance(cfg, dict):
        raise TypeError("Configuration must be a dictionary")
    cfg = dict(cfg or {})
    scenario = cfg.pop("scenario", None) or DEFAULT_SCENARIO
    if scenario not in SCENARIO_REGISTRY:
        raise KeyError(f"Scenario preset '{scenario}' not found")
    merged = deep_merge(SCENARIO_REGISTRY[scenario], cfg)
    params = SimulationParameters.from_dict(merged)
    return params, engine_options(cfg)


def run_scenario(
    source: Union[str, Dict, SimulationParameters, None] = None,
    overrides: Optional[Dict] = None,
    **engine_kwargs,
) -> Tuple[pd.DataFrame, SimulationOutput]:
    """Run one simulation and return ``(daily_log, output)``.

    ``source`` may be a preset name, a config dict or a parameter record.
    ``overrides`` are merged over it; config-level engine flags are applied
    unless an explicit keyword overrides them.
    """

    if isinstance(source, SimulationParameters):
        cfg = deep_merge(source.to_dict(), overrides)
    elif isinstance(source, str):
        cfg = deep_merge({"scenario": source}, overrides)
    elif source is None or isinstance(source, dict):
        cfg = deep_merge(source or {}, overrides)
    else:
        raise TypeError(
            "run_scenario expects a preset name, a config dict or SimulationParameters"
        )

    params, opts = load_config(cfg)
    opts.update(engine_kwargs)
    engine = SimulationEngine(params, **opts)
    output = engine.run()
    return engine.results_frame(), output


def run_monte_carlo(
    source: Union[str, Dict, SimulationParameters, None] = None,
    **kwargs,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    if isinstance(source, SimulationParameters):
        params, opts = source, {}
    elif isinstance(source, str):
        params, opts = load_config({"scenario": source})
    else:
        params, opts = load_config(source)
    if "seed" in opts:
        opts.setdefault("base_seed", opts.pop("seed"))
    opts.update(kwargs)
    return _run_monte_carlo(params, **opts)


__all__ = [
    "OPENING_BALANCE",
    "SCENARIO_REGISTRY",
    "DayResult",
    "FinancialMetrics",
    "GovernanceRules",
    "SimulationEngine",
    "SimulationOutput",
    "SimulationParameters",
    "apply_preset",
    "compute_metrics",
    "daily_variation",
    "deep_merge",
    "delivery_payments",
    "engine_options",
    "ensure_dir",
    "fund_contributions",
    "generate_recommendations",
    "load_config",
    "results_to_frame",
    "run_monte_carlo",
    "run_scenario",
    "save_balance_plot",
    "simulate",
    "summarize_metrics",
    "validate_parameters",
    "weekly_bonus",
]
