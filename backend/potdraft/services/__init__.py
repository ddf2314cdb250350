"""Draft domain services: the state machine and roster import.

Pure(ish) domain logic imported by HTTP routes and by the sync client,
keeping transport concerns separated from the game rules.
"""
