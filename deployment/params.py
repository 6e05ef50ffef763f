import typing
from abc import ABC, abstractmethod
from collections import OrderedDict, namedtuple
from pathlib import Path
from typing import Any, Dict, List, Optional, Type

from eth_typing import ChecksumAddress
from web3.auto import w3

from contracts.base import ZERO_ADDRESS, Contract
from contracts.chain import Chain, Receipt, TestAccount
from deployment.utils import _load_yaml, get_contract_container, validate_config

CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"
CONTRACT_TYPE_KEY = "contract_type"


class VariableContext:
    def __init__(
        self,
        contract_names: List[str],
        contract_name: str,
        deployments: Dict[str, Contract],
        constants: typing.Dict[str, Any] = None,
        deployer_account: Optional[TestAccount] = None,
    ):
        self.contract_names = contract_names or list()
        self.contract_name = contract_name
        self.deployments = deployments
        self.constants = constants or dict()
        self.deployer_account = deployer_account


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class DeployerAccount(Variable):
    DEPLOYER_INDICATOR = "deployer"

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    def __init__(self, context: VariableContext):
        self.deployer_account = context.deployer_account

    def resolve(self) -> Any:
        if self.deployer_account is None:
            return ZERO_ADDRESS
        return self.deployer_account.address


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise ValueError(f"Constant '{constant_name}' not found in deployment file.")

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self) -> Any:
        return self.constant_value


class ContractName(Variable):
    def __init__(self, contract_name: str, context: VariableContext):
        if contract_name not in context.contract_names:
            raise ValueError(f"Contract name {contract_name} not found")

        self.contract_name = contract_name
        self.deployments = context.deployments

    def is_deployed(self) -> bool:
        return self.contract_name in self.deployments

    def resolve(self) -> Any:
        """Resolves a contract address."""
        contract_instance = self.deployments.get(self.contract_name)
        if contract_instance is None:
            # eager validation
            return ZERO_ADDRESS
        return contract_instance.address


def _undeployed_contract_names(value: Any) -> List[str]:
    """Names of the contracts referenced by a parameter value that are not deployed yet."""
    if isinstance(value, list):
        return [name for v in value for name in _undeployed_contract_names(v)]

    if isinstance(value, ContractName) and not value.is_deployed():
        return [value.contract_name]

    return list()


def _resolve_param(value: Any) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v) for v in value]

    if isinstance(value, Variable):
        return value.resolve()

    return value  # literally a value


def _resolve_params(parameters: OrderedDict) -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = _resolve_param(value)

    return resolved_parameters


def _variable_from_value(variable: Any, context: VariableContext) -> Variable:
    variable = variable.strip(Variable.VARIABLE_PREFIX)
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount(context)
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return ContractName(variable, context)


def _process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, variable_context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)

    return value


def _process_raw_values(values: Dict, variable_context: VariableContext) -> OrderedDict:
    processed_parameters = OrderedDict()
    for name, value in values.items():
        processed_parameters[name] = _process_raw_value(value, variable_context)

    return processed_parameters


def _get_contract_names(config: typing.Dict) -> List[str]:
    contract_names = list()
    for contract_info in config["contracts"]:
        if isinstance(contract_info, str):
            contract_names.append(contract_info)
        elif isinstance(contract_info, dict):
            contract_names.extend(list(contract_info.keys()))
        else:
            raise ValueError("Malformed constructor parameters YAML.")

    return contract_names


def _validate_constructor_abi_inputs(
    contract_name: str,
    abi_inputs: typing.Sequence[typing.Tuple[str, str]],
    resolved_parameters: OrderedDict,
) -> None:
    """Validates the constructor parameters against the constructor inputs of a contract type."""
    if len(resolved_parameters) != len(abi_inputs):
        raise ConstructorParameters.Invalid(
            f"Constructor parameters length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(resolved_parameters)}."
        )
    if not abi_inputs:
        return  # no constructor parameters

    codex = enumerate(zip(abi_inputs, resolved_parameters.items()), start=0)
    for position, ((abi_name, abi_type), resolved_input) in codex:
        name, value = resolved_input
        # validate name
        if abi_name != name:
            raise ConstructorParameters.Invalid(
                f"{contract_name} constructor parameter '{name}' at position {position} does not "
                f"match the expected ABI name '{abi_name}'."
            )

        # validate value type
        if not w3.is_encodable(abi_type, value):
            raise ConstructorParameters.Invalid(
                f"Constructor param name '{name}' at position {position} has a value '{value}' "
                f"whose type does not match expected ABI type '{abi_type}'"
            )


class ConstructorParameters:
    """Represents the constructor parameters for a set of contracts."""

    class Invalid(ValueError):
        """Raised when the constructor parameters are invalid"""

    def __init__(self, parameters: OrderedDict, contract_types: Dict[str, Type[Contract]]):
        self.parameters = parameters
        self.contract_types = contract_types
        self.validate()

    @classmethod
    def from_config(
        cls,
        config: typing.Dict,
        deployments: Dict[str, Contract],
        deployer_account: Optional[TestAccount] = None,
    ) -> "ConstructorParameters":
        """Loads the constructor parameters from a params config."""
        print("Processing contract constructor parameters...")
        contracts_config = OrderedDict()
        contract_types = dict()
        contract_names = _get_contract_names(config)
        constants = config.get("constants")
        for contract_info in config["contracts"]:
            if isinstance(contract_info, str):
                contract_name, contract_data = contract_info, dict()
            elif isinstance(contract_info, dict):
                if len(contract_info) != 1:
                    raise ValueError("Malformed constructor parameters YAML.")
                contract_name = list(contract_info.keys())[0]  # only one entry
                contract_data = contract_info[contract_name] or dict()
            else:
                raise ValueError("Malformed constructor parameters YAML.")

            if not isinstance(contract_data, dict):
                raise ValueError(f"Malformed constructor parameter config for {contract_name}.")

            contract_type = contract_data.get(CONTRACT_TYPE_KEY, contract_name)
            contract_types[contract_name] = get_contract_container(contract_type)
            contracts_config[contract_name] = cls._process_parameters(
                constants,
                contract_data,
                contract_name,
                contract_names,
                deployments,
                deployer_account,
            )

        return cls(parameters=contracts_config, contract_types=contract_types)

    @classmethod
    def _process_parameters(
        cls,
        constants,
        contract_data,
        contract_name,
        contract_names,
        deployments,
        deployer_account=None,
    ) -> OrderedDict:
        parameter_values = OrderedDict()
        if CONTRACT_CONSTRUCTOR_PARAMETER_KEY in contract_data:
            parameter_values = _process_raw_values(
                contract_data[CONTRACT_CONSTRUCTOR_PARAMETER_KEY] or dict(),
                VariableContext(
                    contract_names=contract_names,
                    contract_name=contract_name,
                    deployments=deployments,
                    constants=constants,
                    deployer_account=deployer_account,
                ),
            )
        return parameter_values

    def validate(self) -> None:
        """Validates the constructor parameters for all contracts in a single config."""
        for contract_name, parameters in self.parameters.items():
            container = self.contract_types[contract_name]
            _validate_constructor_abi_inputs(
                contract_name=contract_name,
                abi_inputs=container.CONSTRUCTOR_INPUTS,
                resolved_parameters=_resolve_params(parameters),
            )

    def resolve(self, contract_name: str) -> OrderedDict:
        """Resolves the constructor parameters for a single contract."""
        resolved_params = _resolve_params(self.parameters[contract_name])
        return resolved_params


class Transactor:
    """
    Represents an account plus annotated transaction execution.
    """

    def __init__(self, account: TestAccount):
        self._account = account

    def get_account(self) -> TestAccount:
        """Returns the transactor account."""
        return self._account

    def transact(self, method, *args) -> Receipt:
        base_message = f"\nTransacting {method.__self__.contract_name}" \
                       f"[{method.__self__.address[:10]}].{method.__name__}"
        if args:
            pretty_args = "\n\t".join(str(arg) for arg in args)
            message = f"{base_message} with arguments:\n\t{pretty_args}"
        else:
            message = f"{base_message} with no arguments"
        print(message)
        return method(*args, sender=self._account)


class Deployer(Transactor):
    """
    Represents an account plus deployment parameters for a set of contracts,
    deployed to a simulated chain.
    """

    def __init__(self, config: typing.Dict, path: Path, chain: Chain, account: TestAccount = None):
        super().__init__(account or chain.accounts[0])
        self.chain = chain
        self.path = path
        self.config = config

        validate_config(config=self.config, chain_id=chain.chain_id)
        self.deployments: Dict[str, Contract] = OrderedDict()
        self.constructor_parameters = ConstructorParameters.from_config(
            self.config, deployments=self.deployments, deployer_account=self._account
        )

        # Little trick to expose constants as attributes (e.g., deployer.constants.FOO)
        constants = config.get("constants", {})
        _Constants = namedtuple("_Constants", list(constants))
        self.constants = _Constants(**constants)

        self._print_deployment_info()

    @classmethod
    def from_yaml(cls, filepath: Path, *args, **kwargs) -> "Deployer":
        config = _load_yaml(filepath)
        return cls(config, filepath, *args, **kwargs)

    @property
    def contract_names(self) -> List[str]:
        return list(self.constructor_parameters.parameters)

    def deploy(self, contract_name: str) -> Contract:
        if contract_name in self.deployments:
            raise ValueError(f"{contract_name} is already deployed.")
        container = self.constructor_parameters.contract_types[contract_name]
        self._check_dependencies(contract_name)
        resolved_params = self.constructor_parameters.resolve(contract_name)

        print(f"\nDeploying {contract_name} ({container.__name__})")
        for name, resolved_value in resolved_params.items():
            print(f"\t{name}={resolved_value}")

        instance = self._account.deploy(container, *resolved_params.values())
        print(f"{contract_name} deployed to: {instance.address}")
        self.deployments[contract_name] = instance
        return instance

    def _check_dependencies(self, contract_name: str) -> None:
        """Refuses to deploy a contract whose constructor references undeployed contracts."""
        parameters = self.constructor_parameters.parameters[contract_name]
        missing = [
            name for value in parameters.values() for name in _undeployed_contract_names(value)
        ]
        if missing:
            raise ValueError(
                f"Cannot deploy {contract_name}: {', '.join(missing)} must be deployed first."
            )

    def deploy_all(self) -> List[Contract]:
        return [self.deploy(contract_name) for contract_name in self.contract_names]

    def address_of(self, contract_name: str) -> ChecksumAddress:
        return self.deployments[contract_name].address

    def _print_deployment_info(self):
        print(
            f"Account: {self.get_account().address}",
            f"Config: {self.path}",
            f"Deployment: {self.config['deployment'].get('name')}",
            f"Chain ID: {self.chain.chain_id}",
            f"Block: {self.chain.height}",
            sep="\n",
        )
