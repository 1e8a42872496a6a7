"""
File Ledger Domain

Watches a directory and records (path, size) for every created or modified
file in a durable JSON ledger:
- watchers   - watchdog event source feeding the dispatcher
- pipeline   - bounded work queue, dispatcher and worker pool
- processors - metadata extraction
- storage    - the shared, crash-safe ledger store
"""

__all__ = ["pipeline", "processors", "storage", "watchers"]
