"""Case Forensics.

Ingestion, full-text indexing and copy detection for multi-volume
scanned legal case files.
"""

__version__ = "0.1.0"
