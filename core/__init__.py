"""Core (UI-agnostic) CUR dashboard logic.

This package contains:
- line item model and cost parsing
- record sources (CUR exports -> LineItem lists)
- aggregation into trend/breakdown series (JSON-serializable payloads)
- date-range filtering
- per-session view state
- chart helpers (Altair -> Vega-Lite spec dict)
"""
