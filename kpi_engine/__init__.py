"""Sales KPI engine (UI-agnostic).

This package contains:
- the period/column model and palette dispatch
- the P&L ledger catalogue and cell value resolver
- derived metrics, variances and run-rate projections
- customer analytics (concentration, retention, outliers, PVM, focus lists)
- data loading (XLSX -> pandas) and report config normalization
- report compute functions (JSON-serializable payloads) and exports
"""
