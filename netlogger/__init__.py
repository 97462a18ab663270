"""
Network Stats Logger

Samples cellular signal quality and device position, persists periodic
snapshots to a local SQLite buffer and drains that buffer to a remote
store in fixed-size chunks.
"""

__version__ = "1.0.0"
