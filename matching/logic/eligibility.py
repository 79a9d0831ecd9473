"""
Eligibility Evaluator

Runs every non-empty criterion of a scholarship against a student and
aggregates the verdicts with AND semantics. Never short-circuits: the full
breakdown is kept so a UI can explain every failure at once.

The function is pure (no I/O, no shared state). The same code backs the
UI pre-filter and the authoritative server-side check.
"""

from typing import List, Tuple

from .contracts import StudentProfile, Scholarship, EligibilityDetail, MatchResult
from .criteria import evaluate_criterion


def evaluate_details(
    profile: StudentProfile,
    scholarship: Scholarship
) -> List[EligibilityDetail]:
    """One EligibilityDetail per non-empty criterion, in declaration order."""
    return [evaluate_criterion(profile, c) for c in scholarship.active_criteria()]


def evaluate(profile: StudentProfile, scholarship: Scholarship) -> MatchResult:
    """
    Decide binary eligibility of a student for a scholarship.

    Args:
        profile: Student snapshot
        scholarship: Scholarship with its criteria

    Returns:
        MatchResult with is_eligible and every criterion verdict
        (no prediction attached)
    """
    details = evaluate_details(profile, scholarship)
    return MatchResult(
        is_eligible=all(d.passed for d in details),
        eligibility_details=details,
    )


def criteria_met(profile: StudentProfile, scholarship: Scholarship) -> Tuple[int, int]:
    """(matched, total) count over the scholarship's non-empty criteria."""
    details = evaluate_details(profile, scholarship)
    return sum(1 for d in details if d.passed), len(details)
