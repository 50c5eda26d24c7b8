"""
Gateway Settings
Loads JSON configuration from config/ and applies environment overrides
"""

import json
import os
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv
from loguru import logger

load_dotenv()

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"
GATEWAY_CONFIG_PATH = CONFIG_DIR / "gateway_config.json"
CHAINS_CONFIG_PATH = CONFIG_DIR / "chains.json"

PRODUCTION = "production"


def _read_json(path: Path) -> Dict:
    with open(path, 'r') as f:
        return json.load(f)


def load_gateway_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None
) -> Dict:
    """
    Load gateway configuration

    Environment variables win over the file:
        GATEWAY_ENV                     -> environment
        WALLET_ADDRESS (or the variable
        named by sender_address_env)    -> sender_address
        RPC_TIMEOUT_SECONDS             -> timeouts.rpc_timeout_seconds
        CONFIRMATION_TIMEOUT_SECONDS    -> timeouts.confirmation_timeout_seconds

    Args:
        path: Config file, defaults to config/gateway_config.json
        environ: Environment mapping, defaults to os.environ

    Returns:
        Configuration dict
    """
    environ = os.environ if environ is None else environ
    config = _read_json(Path(path) if path else GATEWAY_CONFIG_PATH)

    config.setdefault('timeouts', {})
    config.setdefault('gas_settings', {})
    config.setdefault('token_settings', {})

    if environ.get('GATEWAY_ENV'):
        config['environment'] = environ['GATEWAY_ENV']
    config.setdefault('environment', PRODUCTION)

    sender_env = config.get('sender_address_env', 'WALLET_ADDRESS')
    if environ.get(sender_env):
        config['sender_address'] = environ[sender_env]

    for env_name, key in (
        ('RPC_TIMEOUT_SECONDS', 'rpc_timeout_seconds'),
        ('CONFIRMATION_TIMEOUT_SECONDS', 'confirmation_timeout_seconds'),
    ):
        raw = environ.get(env_name)
        if not raw:
            continue
        try:
            config['timeouts'][key] = float(raw)
        except ValueError:
            raise ValueError(f"{env_name} must be a number of seconds, got {raw!r}")

    logger.debug(f"Gateway config loaded (environment: {config['environment']})")
    return config


def load_chain_table(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Dict]:
    """
    Load the chain table with RPC endpoints filled in from the environment

    Each entry names its endpoint variable in ``rpc_url_env``; a chain whose
    variable is unset keeps ``rpc`` empty and is reported as unsupported.

    Returns:
        chain key -> entry, ready for ``ChainRegistry.from_table``
    """
    environ = os.environ if environ is None else environ
    raw = _read_json(Path(path) if path else CHAINS_CONFIG_PATH)

    table = {}
    for key, entry in raw['chains'].items():
        chain = dict(entry)
        env_name = chain.pop('rpc_url_env', None)
        if env_name:
            chain['rpc'] = environ.get(env_name) or chain.get('rpc')
        table[key] = chain

    missing = [key for key, chain in table.items() if not chain.get('rpc')]
    if missing:
        logger.debug(f"No RPC endpoint set for: {', '.join(missing)}")

    return table


def is_production(config: Mapping) -> bool:
    return str(config.get('environment', PRODUCTION)).lower() == PRODUCTION
