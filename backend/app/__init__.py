"""Cohort Recruitment Application Package — recruitment windows and cohort fulfillment.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
