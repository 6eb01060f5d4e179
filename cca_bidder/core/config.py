"""
Bidder configuration.

Settings come from the environment (optionally seeded from a .env file):
connection, signer, contract addresses, the planned bids, retry and fee
policy. Values are parsed and validated with pydantic; anything invalid
is reported by variable name before the chain is touched.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from eth_account import Account
from pydantic import (
    BaseModel,
    ConfigDict,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from cca_bidder.chain.abi import MULTICALL3_ADDRESS
from cca_bidder.utils.validation import (
    parse_integer,
    validate_address,
    validate_private_key,
    validate_uint128,
    validate_uint256,
)

# Aztec CCA deployment the bidder was written against
DEFAULT_CCA_ADDRESS = "0x608c4e792C65f5527B3f70715deA44d3b302F4Ee"
DEFAULT_HOOK_ADDRESS = "0x2DD6e0E331DE9743635590F6c8BC5038374CAc9D"
DEFAULT_SOULBOUND_ADDRESS = "0xBf3CF56c587F5e833337200536A52E171EF29A09"

DEFAULT_MAX_RETRIES = 3
DEFAULT_POLL_INTERVAL = 12.0


class ConfigError(ValueError):
    """Raised when the environment does not describe a runnable bidder."""


def _as_int(value: Any, name: str) -> int:
    parsed, err = parse_integer(value, name)
    if parsed is None:
        raise ValueError(err)
    return parsed


def _as_address(value: Any, name: str) -> str:
    valid, err = validate_address(value, name)
    if not valid:
        raise ValueError(err)
    return value


# =============================================================================
# Bid Parameters
# =============================================================================


class BidParams(BaseModel):
    """
    One planned bid.

    Attributes:
        max_bid: Maximum price per token (Q96 price units, as the contract expects)
        amount: Currency amount committed, in wei (sent as msg.value)
        owner: Address that will own the bid
    """
    model_config = ConfigDict(frozen=True)

    max_bid: int
    amount: int
    owner: str

    @field_validator("max_bid", mode="before")
    @classmethod
    def _parse_max_bid(cls, value: Any) -> int:
        parsed = _as_int(value, "max_bid")
        valid, err = validate_uint256(parsed, "max_bid")
        if not valid:
            raise ValueError(err)
        return parsed

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> int:
        parsed = _as_int(value, "amount")
        valid, err = validate_uint128(parsed, "amount")
        if not valid:
            raise ValueError(err)
        return parsed

    @field_validator("owner")
    @classmethod
    def _check_owner(cls, value: str) -> str:
        return _as_address(value, "owner")


# =============================================================================
# Settings
# =============================================================================


class BotSettings(BaseModel):
    """Everything needed to run the bidder against one auction."""
    model_config = ConfigDict(frozen=True)

    rpc_url: str
    private_key: str
    bids: List[BidParams]

    cca_address: str = DEFAULT_CCA_ADDRESS
    hook_address: str = DEFAULT_HOOK_ADDRESS
    soulbound_address: str = DEFAULT_SOULBOUND_ADDRESS
    multicall_address: str = MULTICALL3_ADDRESS

    max_retries: int = DEFAULT_MAX_RETRIES
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    generate_access_list: bool = False
    poll_interval: float = DEFAULT_POLL_INTERVAL
    wait_for_end_block: bool = True
    require_eligibility: bool = False
    summary_dir: Path = Path("summaries")

    @field_validator("rpc_url")
    @classmethod
    def _check_rpc_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://", "ws://", "wss://")):
            raise ValueError(f"unsupported RPC URL scheme, use http(s) or ws(s): {value}")
        return value

    @field_validator("private_key")
    @classmethod
    def _check_private_key(cls, value: str) -> str:
        valid, err = validate_private_key(value)
        if not valid:
            raise ValueError(err)
        return value if value.startswith("0x") else "0x" + value

    @field_validator("cca_address", "hook_address", "soulbound_address", "multicall_address")
    @classmethod
    def _check_contract_address(cls, value: str, info: ValidationInfo) -> str:
        return _as_address(value, info.field_name)

    @field_validator("max_fee_per_gas", "max_priority_fee_per_gas", mode="before")
    @classmethod
    def _parse_fee(cls, value: Any, info: ValidationInfo) -> Optional[int]:
        if value is None or value == "":
            return None
        return _as_int(value, info.field_name)

    @field_validator("max_retries")
    @classmethod
    def _check_max_retries(cls, value: int) -> int:
        if value < 1:
            raise ValueError(f"max_retries must be >= 1, got {value}")
        return value

    @field_validator("bids")
    @classmethod
    def _check_bids(cls, value: List[BidParams]) -> List[BidParams]:
        if not value:
            raise ValueError("at least one bid is required")
        return value

    @model_validator(mode="after")
    def _check_fee_pair(self) -> "BotSettings":
        if (self.max_fee_per_gas is None) != (self.max_priority_fee_per_gas is None):
            raise ValueError("MAX_FEE_PER_GAS and MAX_PRIORITY_FEE_PER_GAS must be set together")
        if self.max_fee_per_gas is not None and self.max_priority_fee_per_gas > self.max_fee_per_gas:
            raise ValueError("MAX_PRIORITY_FEE_PER_GAS cannot exceed MAX_FEE_PER_GAS")
        return self


# =============================================================================
# Loading
# =============================================================================

# Environment variable -> settings field
ENV_FIELDS = {
    "ETH_RPC_URL": "rpc_url",
    "PRIVATE_KEY": "private_key",
    "CCA_ADDRESS": "cca_address",
    "HOOK_ADDRESS": "hook_address",
    "SOULBOUND_ADDRESS": "soulbound_address",
    "MULTICALL_ADDRESS": "multicall_address",
    "MAX_RETRIES": "max_retries",
    "MAX_FEE_PER_GAS": "max_fee_per_gas",
    "MAX_PRIORITY_FEE_PER_GAS": "max_priority_fee_per_gas",
    "GENERATE_ACCESS_LIST": "generate_access_list",
    "POLL_INTERVAL": "poll_interval",
    "WAIT_FOR_END_BLOCK": "wait_for_end_block",
    "REQUIRE_ELIGIBILITY": "require_eligibility",
    "SUMMARY_DIR": "summary_dir",
}

REQUIRED_ENV = ("ETH_RPC_URL", "PRIVATE_KEY")


def derive_address(private_key: str) -> str:
    """Checksummed address controlled by a private key."""
    return Account.from_key(private_key).address


def _load_bids(env: Dict[str, str], default_owner: Optional[str]) -> List[Dict[str, Any]]:
    """
    Read planned bids from BIDS_FILE (JSON list) or the single-bid
    MAX_BID_PRICE / BID_AMOUNT variables.
    """
    owner = env.get("OWNER") or default_owner

    bids_file = env.get("BIDS_FILE")
    if bids_file:
        path = Path(bids_file)
        if not path.exists():
            raise ConfigError(f"BIDS_FILE not found: {path}")
        try:
            raw = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise ConfigError(f"BIDS_FILE is not valid JSON: {e}") from e
        if not isinstance(raw, list):
            raise ConfigError("BIDS_FILE must contain a JSON list of bids")
        bids = []
        for i, entry in enumerate(raw, start=1):
            if not isinstance(entry, dict):
                raise ConfigError(f"BIDS_FILE entry #{i} must be an object")
            bids.append({"owner": owner, **entry})
        return bids

    missing = [k for k in ("MAX_BID_PRICE", "BID_AMOUNT") if not env.get(k)]
    if missing:
        raise ConfigError(
            f"missing {', '.join(missing)} (set them, or point BIDS_FILE at a JSON list of bids)"
        )
    return [{"max_bid": env["MAX_BID_PRICE"], "amount": env["BID_AMOUNT"], "owner": owner}]


def _format_validation_error(error: ValidationError) -> str:
    lines = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        lines.append(f"{location}: {item['msg']}")
    return "; ".join(lines)


def load_config(
    env_file: Optional[str] = None,
    environ: Optional[Dict[str, str]] = None,
) -> BotSettings:
    """
    Load settings from the environment.

    Args:
        env_file: Optional .env file loaded before reading the environment
        environ: Explicit mapping to read instead of os.environ

    Returns:
        BotSettings instance

    Raises:
        ConfigError: missing or invalid settings
    """
    if environ is None:
        load_dotenv(dotenv_path=env_file, override=False)
        environ = dict(os.environ)

    missing = [name for name in REQUIRED_ENV if not environ.get(name)]
    if missing:
        raise ConfigError(f"missing required environment variables: {', '.join(missing)}")

    valid, err = validate_private_key(environ["PRIVATE_KEY"])
    if not valid:
        raise ConfigError(err)
    signer_address = derive_address(environ["PRIVATE_KEY"])

    values: Dict[str, Any] = {
        field_name: environ[var]
        for var, field_name in ENV_FIELDS.items()
        if environ.get(var) not in (None, "")
    }
    values["bids"] = _load_bids(environ, signer_address)

    try:
        return BotSettings(**values)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {_format_validation_error(e)}") from e


__all__ = [
    "BidParams",
    "BotSettings",
    "ConfigError",
    "load_config",
    "derive_address",
    "DEFAULT_MAX_RETRIES",
]
