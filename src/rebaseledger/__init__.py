"""Rebase token ledger: interest-accruing balances behind a native-asset vault."""
