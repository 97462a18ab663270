"""
Network Stats Logger Services

1. Capture - samplers, aggregator, periodic persistence
2. Storage - local SQLite buffer
3. Sync - chunked drain to the remote store
"""
