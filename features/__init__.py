"""
Features package — the stateful building blocks of the minting workflow.

  features/auth/       credentials and bearer-token refresh
  features/ledger/     persisted log of submitted operations
  features/progress/   stage gating and the busy flag
  features/state/      JSON-file and Postgres state stores

Each sub-package re-exports its public API from __init__.py and is loaded
from / saved to a StateStore under its own logical name.
"""
