"""Guided Arch Linux installer (Python-first, pipeline-driven).

Core design goals:
- One confirmed plan, collected before anything is erased
- Ordered steps, each returning a result record
- Best-effort device reclaim, fatal partitioning
- A single fallback retry for the bulk package install
- Every action recorded and copied into the installed system
"""

__all__ = []
