"""Scholarship matching: eligibility, success prediction and retraining."""
