"""MDMA provisioner (staged, plan-then-apply).

Core design goals:
- Nothing is applied that was not planned first
- Plans are type checked as they are built
- Idempotent stages: a second run is a no-op
- Dry run by default
- Centralized logging
"""

__all__ = []
