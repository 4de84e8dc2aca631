"""privacy-suite: transactional configuration of Tor, proxychains and WireGuard.

Core design goals:
- Snapshot before every mutation, roll back on any failed step
- Idempotent line-level edits, written atomically
- Untrusted input configs validated before use
- One explicit run context, no process-wide state
- Centralized logging
"""

__all__ = []
