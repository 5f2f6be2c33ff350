"""Adaptive request router.

Routes chat completions to a budgeted primary provider or an unconditional
secondary:
  - Usage Ledger (RPM/TPM sliding window + rolling daily tokens)
  - Cooldown Gate (fixed avoidance period after a primary 429)
  - Backend Selector (primary vs. secondary)
  - Provider Adapters + Request Dispatcher (outbound call, accounting)
"""
