"""
File Ledger Pipeline

- dispatcher.py - event filtering, bounded work queue and backpressure
- workers.py - fixed-size worker pool
"""
