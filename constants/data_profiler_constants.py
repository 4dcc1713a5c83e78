# ─────────────────────────────────────────────
# CONSTANTS
# ─────────────────────────────────────────────

# Missingness severity thresholds (share of rows that are empty or sentinel)
MISSING_LOW_THRESHOLD = 0.05       # < 5%  → low, manageable
MISSING_MODERATE_THRESHOLD = 0.20  # < 20% → moderate, worth noting
# >= 20% → serious concern, most values will be imputed

# Skewness thresholds
SKEW_MODERATE = 0.5
SKEW_HIGH = 1.0
