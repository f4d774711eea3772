#!/usr/bin/env python
"""
Price a European option by Monte Carlo over explicit Euler paths.

Usage:
    python scripts/run_pricer.py                                  # Default option data
    python scripts/run_pricer.py --strike 65 --spot 60 --rate 0.08 \\
        --volatility 0.3 --type put --n-simulations 50000          # Reference put
    python scripts/run_pricer.py --engine "Lagged Fibonacci" --workers 4
    python scripts/run_pricer.py --engine 3 --validate --json

Fields not given on the command line fall back to SETTINGS.option. The
engine may be named by description ("Mersenne Twister") or id (1, 2, 3).
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from euler_pricing.config.settings import SETTINGS
from euler_pricing.data.schemas import OptionConfigurationBuilder
from euler_pricing.errors import EulerPricingError
from euler_pricing.options.pricing.black_scholes import black_scholes_price
from euler_pricing.options.simulation.aggregation import NonFinitePolicy
from euler_pricing.options.simulation.monte_carlo import (
    ExecutionBackend,
    PricingEngine,
    SimulationConfig,
)
from euler_pricing.options.simulation.rng import EngineType
from euler_pricing.validation.gates import ValidationEngine

logger = logging.getLogger("run_pricer")


def parse_engine(value: str):
    """Numeric ids select by id, anything else by description."""
    stripped = value.strip()
    if stripped.lstrip("+-").isdigit():
        return int(stripped)
    return stripped


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Euler Monte Carlo option pricer")

    option = parser.add_argument_group("option data")
    option.add_argument("--strike", type=float, help="Strike price K")
    option.add_argument("--expiry", type=float, help="Time to expiry T in years")
    option.add_argument("--rate", type=float, help="Risk-free rate r")
    option.add_argument("--volatility", type=float, help="Volatility sigma")
    option.add_argument("--spot", type=float, help="Initial underlying price S")
    option.add_argument("--dividend", type=float, help="Dividend yield D")
    option.add_argument("--n-simulations", type=int, help="Number of paths NSIM")
    option.add_argument("--type", dest="option_type", help="call/put (or 1/-1)")

    run = parser.add_argument_group("simulation")
    run.add_argument("--n-steps", type=int, default=SETTINGS.simulation.n_steps, help="Euler steps NT")
    run.add_argument(
        "--engine",
        type=parse_engine,
        default=SETTINGS.simulation.default_engine,
        help="Random engine description or id (%s)"
        % ", ".join(f"{e.engine_id}={e.description}" for e in EngineType if e.is_known),
    )
    run.add_argument("--seed", type=int, default=SETTINGS.simulation.seed, help="Run seed")
    run.add_argument("--workers", type=int, default=SETTINGS.simulation.n_workers, help="Worker partitions")
    run.add_argument(
        "--backend",
        choices=[b.value for b in ExecutionBackend],
        default=ExecutionBackend.THREAD.value,
        help="Where worker partitions run",
    )
    run.add_argument(
        "--on-non-finite",
        choices=[p.value for p in NonFinitePolicy],
        default=NonFinitePolicy.EXCLUDE.value,
        help="Exclude non-finite paths or abort the run",
    )

    output = parser.add_argument_group("output")
    output.add_argument("--validate", action="store_true", help="Run validation gates on the result")
    output.add_argument("--json", action="store_true", help="Print the result as JSON")
    output.add_argument("-v", "--verbose", action="store_true", help="Log progress and timing")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    builder = OptionConfigurationBuilder.defaults()
    overrides = {
        "strike": builder.set_strike,
        "expiry": builder.set_expiry,
        "rate": builder.set_rate,
        "volatility": builder.set_volatility,
        "spot": builder.set_spot,
        "dividend": builder.set_dividend,
        "n_simulations": builder.set_n_simulations,
        "option_type": builder.set_option_type,
    }
    for name, setter in overrides.items():
        value = getattr(args, name)
        if value is not None:
            setter(value)

    try:
        option = builder.build()
        config = SimulationConfig(
            n_steps=args.n_steps,
            n_workers=args.workers,
            seed=args.seed,
            backend=ExecutionBackend(args.backend),
            non_finite_policy=NonFinitePolicy(args.on_non_finite),
            verbose=args.verbose,
        )
        result = PricingEngine(config).price(option, args.engine)
    except EulerPricingError as e:
        print(e, file=sys.stderr)
        return 1

    analytical = black_scholes_price(option)
    lower, upper = result.confidence_interval
    payload = {
        "option": {
            "type": option.option_type.value,
            "strike": option.strike,
            "expiry": option.expiry,
            "rate": option.rate,
            "volatility": option.volatility,
            "spot": option.spot,
            "dividend": option.dividend,
        },
        "engine": result.engine_description,
        "n_steps": result.n_steps,
        "n_paths": result.n_paths,
        "price": result.price,
        "standard_deviation": result.standard_deviation,
        "standard_error": result.standard_error,
        "confidence_interval": [lower, upper],
        "degenerate_count": result.degenerate_count,
        "invalid_count": result.invalid_count,
        "black_scholes": analytical,
        "execution_time_sec": result.execution_time_sec,
    }

    report = None
    if args.validate:
        report = ValidationEngine().validate(result, option=option, analytical_price=analytical)
        payload["validation"] = report.to_dict()

    if args.json:
        print(json.dumps(payload, indent=2))
    else:
        print(f"Engine:              {result.engine_description}")
        print(f"Paths x steps:       {result.n_paths} x {result.n_steps}")
        print(f"Price:               {result.price:.6f}")
        print(f"95% CI:              [{lower:.6f}, {upper:.6f}]")
        print(f"Standard deviation:  {result.standard_deviation:.6f}")
        print(f"Standard error:      {result.standard_error:.6f}")
        print(f"Paths through zero:  {result.degenerate_count}")
        if result.invalid_count:
            print(f"Non-finite paths:    {result.invalid_count}")
        print(f"Black-Scholes:       {analytical:.6f}")
        print(f"Elapsed:             {result.execution_time_sec:.2f}s")
        if report is not None:
            print(f"Validation:          {report.overall_status.value.upper()}")
            for gate in report.halted_gates + report.warned_gates:
                print(f"  - {gate.status.name} {gate.gate_name}: {gate.message}")

    if report is not None and not report.passed:
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
