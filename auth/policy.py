"""
auth/policy.py -- Password strength policy.

Pure validation: no state beyond the rule thresholds, no I/O. The same
candidate always produces the same PolicyResult -- character classes are
fixed ASCII sets, not str.isupper()/str.isdigit(), so the outcome does not
depend on locale or Unicode category tables.

Rules are checked in a fixed order and every failing rule contributes one
description, so clients can render the list as-is.
"""

from __future__ import annotations

import string
from itertools import groupby

from auth.models import PolicyResult

SPECIAL_CHARACTERS = " !\"#$%&'()*+,-./:;<=>?@[\\]^_`{|}~"


class PasswordPolicy:
    """Length, identical-run and character-class rules.

    Usage:
        policy = PasswordPolicy()
        result = policy.evaluate("Passw0rd!")
        result.accepted     # True
        result.violations   # ()
    """

    def __init__(
        self,
        min_length: int = 6,
        max_identical: int = 3,
        special_characters: str = SPECIAL_CHARACTERS,
    ) -> None:
        self.min_length = min_length
        self.max_identical = max_identical
        self.special_characters = frozenset(special_characters)

    # ------------------------------------------------------------------
    # Rule descriptions
    # ------------------------------------------------------------------

    @property
    def length_rule(self) -> str:
        return f"At least {self.min_length} characters in length"

    @property
    def identical_rule(self) -> str:
        example = "a" * (self.max_identical + 1)
        return f'No more than {self.max_identical} identical characters in a row (e.g., "{example}" not allowed)'

    @property
    def contains_rule(self) -> str:
        return "Should contain: upper case letters (A-Z), numbers (i.e. 0-9), special characters (e.g. !@#$%^&*)"

    def explain(self) -> list[str]:
        """Return the description of every rule, in evaluation order."""
        return [self.length_rule, self.identical_rule, self.contains_rule]

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate(self, candidate: str) -> PolicyResult:
        violations: list[str] = []
        if len(candidate) < self.min_length:
            violations.append(self.length_rule)
        if self._longest_run(candidate) > self.max_identical:
            violations.append(self.identical_rule)
        if not self._has_required_classes(candidate):
            violations.append(self.contains_rule)
        return PolicyResult(accepted=not violations, violations=tuple(violations))

    @staticmethod
    def _longest_run(candidate: str) -> int:
        return max((sum(1 for _ in run) for _, run in groupby(candidate)), default=0)

    def _has_required_classes(self, candidate: str) -> bool:
        chars = set(candidate)
        return (
            bool(chars & set(string.ascii_uppercase))
            and bool(chars & set(string.digits))
            and bool(chars & self.special_characters)
        )
