"""
File Ledger Storage

- ledger_store.py - lock-guarded, atomically replaced JSON ledger
"""
