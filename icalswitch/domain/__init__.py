"""Busy/free decision logic: eligibility, selection, scheduling, run pipeline."""
