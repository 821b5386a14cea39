"""Game domain services: rooms, negotiation, state reconciliation and timers.

This package contains pure(ish) domain logic that is driven by the socket
handlers and HTTP routes, keeping transport concerns separated from the
room state machine.
"""
