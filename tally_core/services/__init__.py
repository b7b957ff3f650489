"""
Services Package

- workpaper: low-value pool ledger, claims ledger, persistence and sessions
- tax_modules: category deduction calculators
- records: per-category record stores
- ato_categories: D1-D15 catalogue and expense suggestions
- aggregation: workpaper to claim helpers
- extraction: document extraction port
"""
