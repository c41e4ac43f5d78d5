"""
Shared Kernel

Building blocks used by the assets, bookings and auctions apps: entity and
event base classes, the DateRange value object, domain errors, the unit of
work, the message bus and row-lock helpers.
"""
