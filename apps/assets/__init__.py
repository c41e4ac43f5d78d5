"""Assets app package.

This app holds the advertising inventory catalog as seen by the allocation
core: assets with their level, daily value and slot count, and the optional
per-asset quota, fairness, bid-cap and ROI data that shape how contested
slots are allocated.
"""
