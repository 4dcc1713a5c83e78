# ─────────────────────────────────────────────
# SPLIT
# ─────────────────────────────────────────────

DEFAULT_TRAIN_FRACTION = 0.75
DEFAULT_SEED = 42
MAX_STRATA = 5                     # quantile groups of the target used for stratified sampling


# ─────────────────────────────────────────────
# CROSS-VALIDATION / COMPONENT SELECTION
# ─────────────────────────────────────────────

DEFAULT_CV_FOLDS = 10
ELBOW_MIN_RELATIVE_GAIN = 0.02     # next component must cut RMSEP by >= 2% to be worth keeping

# Standardized predictor block: singular values below this (relative) are treated as zero
RANK_TOLERANCE = 1e-10
