"""Bookings app package.

This app encapsulates the booking side of the allocation core: the booking
model, the conflict index and temporal rule validator, and the admission
workflow that stores a booking and reserves its slots. Admissions for one
asset are serialized by locking the asset row inside the transaction.
"""
