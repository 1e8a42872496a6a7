"""
File Ledger Processors

- metadata.py - stat-based FileRecord extraction
"""
