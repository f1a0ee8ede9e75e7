"""
Timesheet Kernel

The approval workflow engine for weekly timesheets:
- Entry validation (strict ranges, open-ended overlap rules)
- Ordered per-project approval stages with a decision ledger
- Derived timesheet status
- Atomic stage reconfiguration
"""

__version__ = "0.1.0"
