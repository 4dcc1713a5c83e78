# ─────────────────────────────────────────────
# INPUT FILE LAYOUT (UCI Air Quality export)
# ─────────────────────────────────────────────

DEFAULT_DELIMITER = ";"

TIMESTAMP_COLUMNS = ["Date", "Time"]

NUMERIC_COLUMNS = [
    "CO(GT)",
    "PT08.S1(CO)",
    "NMHC(GT)",
    "C6H6(GT)",
    "PT08.S2(NMHC)",
    "NOx(GT)",
    "PT08.S3(NOx)",
    "NO2(GT)",
    "PT08.S4(NO2)",
    "PT08.S5(O3)",
    "T",
    "RH",
    "AH",
]

REQUIRED_COLUMNS = TIMESTAMP_COLUMNS + NUMERIC_COLUMNS

# Benzene concentration — the regression target
DEFAULT_TARGET = "C6H6(GT)"
