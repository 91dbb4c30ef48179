"""Default cadence for staggered polling.

300K targets polled every 300 s is 1,000 requests per second when spread
evenly across one-second bins, and a 300,000-request burst when not.
"""

# Default polling interval (5-minute freshness SLA)
DEFAULT_INTERVAL_SECONDS = 300

# One bin per second of the interval
DEFAULT_BIN_COUNT = 300

# Acceptable coefficient of variation (stdDev / mean) of per-bin populations
MAX_DISTRIBUTION_CV = 0.15
