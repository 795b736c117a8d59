"""
Base Time Units

Shared time units used to express TTLs, buffers and delays in seconds.
"""

BASE_SECOND = 1
BASE_MINUTE = 60 * BASE_SECOND
BASE_HOUR = 60 * BASE_MINUTE
BASE_DAY = 24 * BASE_HOUR
