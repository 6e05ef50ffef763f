from contracts.bridge import TokenBridge
from contracts.merge import HezMaticMerge, TokenMerge
from contracts.token import CustomERC20, ERC20PermitMock

CONTRACT_TYPES = {
    container.__name__: container
    for container in (TokenBridge, TokenMerge, HezMaticMerge, ERC20PermitMock, CustomERC20)
}
