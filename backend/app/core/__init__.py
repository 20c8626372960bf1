"""Core Layer — recruitment state machine, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, models/ or db/
    - Time and enrollee data arrive through repository_protocols

Design Decisions:
    - Functional core separated from imperative shell: routes load, command, persist
"""
