"""Class scheduling and enrollment capacity engine."""
