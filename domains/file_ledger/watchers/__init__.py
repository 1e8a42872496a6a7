"""
File Ledger Watchers

- filesystem.py - watchdog observer and event handler
"""
