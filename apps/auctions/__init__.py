"""Auctions app package.

Contested bookings are resolved here: bids with auto-bidding, per-day slot
counters per demand class, the slot quota manager, the fairness scorer and
the resolver that hands a booking over to the winning bid.
"""
