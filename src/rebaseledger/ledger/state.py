from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List

from rebaseledger.ledger.accrual import account_accrued_balance
from rebaseledger.ledger.constants import (
    DEFAULT_TOKEN_ID,
    DEFAULT_VAULT_ACCOUNT,
    INITIAL_GLOBAL_RATE,
    MINT_AND_BURN_ROLE,
    PRECISION,
)

Json = Dict[str, Any]


@dataclass(frozen=True, slots=True)
class LedgerView:
    """
    Immutable read-only ledger view used by queries and admission.

    Every time-dependent query is evaluated at `now_s`, which callers derive
    from the commit clock (never from a skewed local wall clock).
    """

    accounts: Dict[str, Any] = field(default_factory=dict)
    roles: Dict[str, Any] = field(default_factory=dict)
    token: Dict[str, Any] = field(default_factory=dict)
    native: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    tip_ts_ms: int = 0
    now_s: int = 0

    @classmethod
    def from_ledger(cls, state: Dict[str, Any], *, now_ms: int | None = None) -> "LedgerView":
        tip_ts_ms = int(state.get("tip_ts_ms", 0) or 0)
        at_ms = tip_ts_ms if now_ms is None else max(int(now_ms), tip_ts_ms)
        return cls(
            accounts=copy.deepcopy(state.get("accounts", {})),
            roles=copy.deepcopy(state.get("roles", {})),
            token=copy.deepcopy(state.get("token", {})) if isinstance(state.get("token"), dict) else {},
            native=copy.deepcopy(state.get("native", {})) if isinstance(state.get("native"), dict) else {},
            params=copy.deepcopy(state.get("params", {})) if isinstance(state.get("params"), dict) else {},
            tip_ts_ms=tip_ts_ms,
            now_s=at_ms // 1000,
        )

    def get_account(self, account_id: str) -> Dict[str, Any]:
        acct = self.accounts.get(account_id)
        return acct if isinstance(acct, dict) else {}

    def get_nonce(self, account_id: str) -> int:
        acct = self.get_account(account_id)
        try:
            return int(acct.get("nonce", 0))
        except Exception:
            return 0

    def get_param(self, key: str, default: Any = None) -> Any:
        try:
            return self.params.get(key, default)
        except Exception:
            return default

    # ----------------------------
    # Token queries (pure)
    # ----------------------------

    def balance_of(self, account_id: str) -> int:
        """Accrued balance: principal scaled by the linear factor since last realization."""
        return account_accrued_balance(self.get_account(account_id), self.now_s)

    def principal_balance_of(self, account_id: str) -> int:
        return int(self.get_account(account_id).get("principal", 0) or 0)

    def get_user_rate(self, account_id: str) -> int:
        return int(self.get_account(account_id).get("rate", 0) or 0)

    def last_update_of(self, account_id: str) -> int:
        return int(self.get_account(account_id).get("last_update_s", 0) or 0)

    def get_global_rate(self) -> int:
        return int(self.token.get("global_rate", INITIAL_GLOBAL_RATE))

    def total_supply(self) -> int:
        """Sum of realized principal (unrealized interest is not counted)."""
        return int(self.token.get("total_supply", 0) or 0)

    def allowance(self, owner: str, spender: str) -> int:
        allowances = self.token.get("allowances")
        if not isinstance(allowances, dict):
            return 0
        per_owner = allowances.get(owner)
        if not isinstance(per_owner, dict):
            return 0
        return int(per_owner.get(spender, 0) or 0)

    def role_holders(self, role: str = MINT_AND_BURN_ROLE) -> List[str]:
        holders = self.roles.get(role)
        if not isinstance(holders, list):
            return []
        return sorted(str(h) for h in holders)

    def has_role(self, account_id: str, role: str = MINT_AND_BURN_ROLE) -> bool:
        return account_id in self.role_holders(role)

    def owner(self) -> str:
        return str(self.params.get("owner") or "")

    @property
    def precision(self) -> int:
        return PRECISION

    # ----------------------------
    # Native asset / vault queries
    # ----------------------------

    def native_balance_of(self, account_id: str) -> int:
        balances = self.native.get("balances")
        if not isinstance(balances, dict):
            return 0
        return int(balances.get(account_id, 0) or 0)

    def vault_account(self) -> str:
        return str(self.params.get("vault_account") or DEFAULT_VAULT_ACCOUNT)

    def vault_reserve(self) -> int:
        return self.native_balance_of(self.vault_account())

    def rebase_token_address(self) -> str:
        """Identifier of the token the vault mints (getRebaseTokenAddress)."""
        return str(self.params.get("token_id") or DEFAULT_TOKEN_ID)

    def account_summary(self, account_id: str) -> Json:
        return {
            "account": account_id,
            "balance": self.balance_of(account_id),
            "principal": self.principal_balance_of(account_id),
            "rate": self.get_user_rate(account_id),
            "last_update_s": self.last_update_of(account_id),
            "native_balance": self.native_balance_of(account_id),
            "nonce": self.get_nonce(account_id),
        }
