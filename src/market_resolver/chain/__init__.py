"""Oracle contract access."""

from market_resolver.chain.gateway import ChainGateway
from market_resolver.chain.web3_gateway import Web3ChainGateway

__all__ = ["ChainGateway", "Web3ChainGateway"]
