"""
Grants Kernel

A milestone-based grant proposal registry with:
- A monotone proposal lifecycle (proposed, accepted, completed, rejected)
- Overflow-checked milestone accounting
- Idempotent fund transfers through an injected gateway
- Append-only, hash-chained registry events
"""

__version__ = "0.1.0"
