"""Core Layer — pure protocol and message logic, no IO, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, client/, or db/
    - Functions are deterministic apart from freshly generated ids

Design Decisions:
    - Functional core separated from imperative shell: the stream protocol is
      shared by the server encoder and the client reducer
"""
