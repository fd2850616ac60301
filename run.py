#!/usr/bin/env python3
"""
Proposal Factory - command line runner

Usage:
    python run.py predict config/proposal_example.yaml   # Print predicted identifier
    python run.py deploy config/proposal_example.yaml    # Delegate, then create
    python run.py deploy SCENARIO --threshold 0          # Override the threshold
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Sequence

import yaml
from dotenv import load_dotenv

from src.config import get_validated_config, load_config, set_config_value
from src.config_schema import AppConfig
from src.factory.authorization import DelegatedPowerQuery, DelegationType, PowerLedger
from src.factory.constants import CONFIG_PATH_ENV
from src.factory.deriver import Identifier, load_code
from src.factory.errors import FactoryError
from src.factory.logger import EventLogger
from src.factory.orchestrator import ProposalFactory
from src.factory.params import ArtifactParameters

# Delegatee placeholder resolved to the predicted identifier
PREDICTED = "predicted"


def load_scenario(path: str | Path) -> dict[str, Any]:
    """Load a proposal scenario YAML file (params, balances, delegations)."""
    with open(path) as f:
        loaded: Any = yaml.safe_load(f)
    if not isinstance(loaded, dict) or "params" not in loaded:
        raise ValueError(f"Scenario {path} has no 'params' section")
    return loaded


def build_power_ledger(scenario: dict[str, Any], predicted: Identifier) -> PowerLedger:
    """Apply the scenario's balances and delegations to a fresh PowerLedger."""
    power_ledger = PowerLedger()
    for holder, amount in (scenario.get("balances") or {}).items():
        power_ledger.set_balance(holder, int(amount))
    for entry in scenario.get("delegations") or []:
        delegatee = entry["delegatee"]
        if delegatee == PREDICTED:
            delegatee = str(predicted)
        kind = DelegationType[str(entry.get("type", "proposition")).upper()]
        power_ledger.delegate_by_type(entry["delegator"], delegatee, kind)
    return power_ledger


def resolve_code(config: AppConfig, override: str | None) -> bytes:
    code_path = override or config.factory.code_path
    if not code_path:
        raise ValueError("No artifact code: set factory.code_path or pass --code")
    return load_code(code_path)


def cmd_predict(config: AppConfig, scenario: dict[str, Any], code: bytes) -> int:
    params = ArtifactParameters.from_dict(scenario["params"])
    factory = ProposalFactory.from_config(config, code, DelegatedPowerQuery(PowerLedger()))
    print(json.dumps({
        "identifier": str(factory.calculate_identifier(params)),
        "namespace": factory.namespace,
        "code_hash": "0x" + factory.code_hash.hex(),
    }, indent=2))
    return 0


def cmd_deploy(config: AppConfig, scenario: dict[str, Any], code: bytes) -> int:
    params = ArtifactParameters.from_dict(scenario["params"])
    predictor = ProposalFactory.from_config(config, code, DelegatedPowerQuery(PowerLedger()))
    predicted = predictor.calculate_identifier(params)

    power_ledger = build_power_ledger(scenario, predicted)
    kind = DelegationType[config.authorization.delegation_type.upper()]
    factory = ProposalFactory.from_config(
        config,
        code,
        DelegatedPowerQuery(power_ledger, kind),
        event_logger=EventLogger(config.logging.output_file),
    )

    try:
        identifier = factory.create(params)
    except FactoryError as exc:
        print(json.dumps(exc.to_response(), indent=2))
        return 1

    record = factory.get_record(identifier)
    print(json.dumps({
        "success": True,
        "identifier": str(identifier),
        "predicted": str(predicted),
        "power": power_ledger.get_power_current(identifier, kind),
        "threshold": factory.threshold,
        "record": record.to_dict() if record else None,
        "events": [e.to_dict() for e in factory.events()],
    }, indent=2))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Predict and create proposal instances"
    )
    parser.add_argument(
        "--config",
        default=os.environ.get(CONFIG_PATH_ENV, "config/config.yaml"),
        help="Path to config file",
    )
    parser.add_argument("--code", default=None, help="Artifact code file")
    parser.add_argument("--threshold", type=int, default=None, help="Override threshold")
    parser.add_argument("command", choices=["predict", "deploy"])
    parser.add_argument("scenario", help="Proposal scenario YAML")
    args: argparse.Namespace = parser.parse_args(argv)

    load_config(args.config)
    if args.threshold is not None:
        set_config_value("authorization.threshold", args.threshold)
    config = get_validated_config()

    logging.basicConfig(
        level=getattr(logging, config.logging.level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    scenario = load_scenario(args.scenario)
    code = resolve_code(config, args.code)

    try:
        if args.command == "predict":
            return cmd_predict(config, scenario, code)
        return cmd_deploy(config, scenario, code)
    except FactoryError as exc:
        # Malformed scenario params surface here
        print(json.dumps(exc.to_response(), indent=2))
        return 2


if __name__ == "__main__":
    sys.exit(main())
