"""
Persistence for Steward.

- **keyed_store.py**: JSON-file-per-table document store keyed by guild id
  (and user id for user-scoped tables), with per-table locking and atomic
  whole-file rewrites.
- **errors.py**: The ``StoreError`` hierarchy raised when the store is not
  configured to fail open.
"""
