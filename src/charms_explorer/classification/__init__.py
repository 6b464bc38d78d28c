"""Rule-based classification of charm records and transactions."""
