"""Services Layer — persistence of study aggregates and enrollee data sources.

Invariants:
    - Services wrap core commands with IO; they never decide transitions
"""
