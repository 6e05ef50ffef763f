from pathlib import Path
from typing import Dict, Type

import yaml

from contracts import CONTRACT_TYPES
from contracts.base import Contract


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def validate_config(config: Dict, chain_id: int) -> None:
    """
    Checks that the params file is well formed and targets the chain it is used with.
    """
    print("Validating parameters YAML...")

    deployment = config.get("deployment")
    if not deployment:
        raise ValueError("deployment is not set in params file.")

    config_chain_id = deployment.get("chain_id")
    if not config_chain_id:
        raise ValueError("chain_id is not set in params file.")

    contracts = config.get("contracts")
    if not contracts:
        raise ValueError("Constructor parameters file missing 'contracts' field.")

    config_chain_id = int(config_chain_id)
    if config_chain_id != chain_id:
        raise ValueError(
            f"chain_id in params file ({config_chain_id}) does not match "
            f"chain_id of current chain ({chain_id})."
        )


def get_contract_container(contract: str) -> Type[Contract]:
    try:
        return CONTRACT_TYPES[contract]
    except KeyError:
        raise ValueError(f"No contract found with name '{contract}'.")
