"""
Consolidation Modules.

Thin orchestration layers over the Consolidation Kernel and Engines.
Each module contains:
- Domain models (the nouns)
- Configuration schemas (layouts and settings)
- Pure builders
- A read-only service

Modules:
- Statements: consolidated income statement, balance sheet and cash flow,
  drill-down and per-scope breakdowns

Actual processing logic lives in the kernel and engines.
"""

from consolidation_modules import statements

__all__ = ["statements"]
