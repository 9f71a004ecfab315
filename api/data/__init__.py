"""
Data-layer helpers that sit on top of `core.db` (versioning, migrations).
"""
