"""
Shared constants for the Deduplication Retention Simulator
Centralizes domain constants so validation and simulation agree on them
"""

# ============================================================================
# Calendar
# ============================================================================

DAYS_IN_WEEK = 7
DAYS_IN_MONTH = 30
DAYS_IN_YEAR = 365

# Interval used for the coarse monthly dictionary sizing series
MONTHLY_SAMPLE_INTERVAL = DAYS_IN_MONTH

# ============================================================================
# Retention Tiers
# ============================================================================

TIER_DAILY = "daily"
TIER_WEEKLY = "weekly"
TIER_MONTHLY = "monthly"
TIER_YEARLY = "yearly"

# ============================================================================
# Compression
# ============================================================================

# Days the compression engine needs to reach its full ratio
RAMP_UP_DAYS = 3

# ============================================================================
# Dictionary Sizing
# ============================================================================

# Footprint in TiB is scaled by this factor before dividing by key size
KEY_SCALE = 1024**3

# Bytes of index consumed by one deduplication key
BYTES_PER_KEY = 32

# ============================================================================
# Simulation Limits
# ============================================================================

# Hard ceiling regardless of settings; the retention pass is O(days^2)
MAX_SIMULATION_DAYS = 36_500

# Largest accepted source size in TiB
MAX_SOURCE_SIZE_TIB = 1e12
