# src/rebaseledger/ledger/constants.py
from __future__ import annotations

"""Ledger monetary constants.

- Rates are 18-decimal fixed point, expressed per second.
- Balances are plain integers in the token's smallest unit.
- The native asset converts 1:1 with token units at the vault boundary.
"""

# Fixed-point precision for rates and the linear interest factor.
PRECISION_DECIMALS: int = 18
PRECISION: int = 10**PRECISION_DECIMALS

# 5e-8 per second (~157% simple interest per year).
INITIAL_GLOBAL_RATE: int = (5 * PRECISION) // 10**8

# Role that may call mint/burn.
MINT_AND_BURN_ROLE: str = "mint_and_burn"

# Wire value that requests "everything the account holds".
ALL_AMOUNT_TOKEN: str = "all"

# Default well-known account ids (overridable via config).
DEFAULT_OWNER: str = "owner"
DEFAULT_TOKEN_ID: str = "RBT"
DEFAULT_VAULT_ACCOUNT: str = "VAULT"
DEFAULT_BRIDGE_POOL_ACCOUNT: str = "BRIDGE_POOL"
SYSTEM_SIGNER: str = "SYSTEM"

# Allowance that is never decremented by transferFrom ("unlimited" approval).
MAX_ALLOWANCE: int = 2**256 - 1
