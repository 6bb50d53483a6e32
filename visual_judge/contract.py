"""Natural-language test contract handed to the judge."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .utils import collapse_whitespace


@dataclass(frozen=True)
class TestContext:
    """What the judge should look at, what should happen, and what to ignore."""

    __test__ = False  # not a pytest test class

    subject: str
    action: str = ""
    expectation: str = ""
    warnings: tuple[str, ...] = ()
    pass_condition: str = ""
    notes: str | None = None

    def __post_init__(self) -> None:
        # Accept any sequence for warnings but store an immutable tuple.
        if not isinstance(self.warnings, tuple):
            warnings = self.warnings
            if isinstance(warnings, str):
                warnings = [warnings]
            object.__setattr__(self, "warnings", tuple(warnings or ()))

    @classmethod
    def from_text(cls, text: str) -> "TestContext":
        return cls(subject=collapse_whitespace(text))

    @property
    def is_free_text(self) -> bool:
        return not (self.action or self.expectation or self.warnings or self.pass_condition or self.notes)

    def render(self) -> str:
        if self.is_free_text:
            return collapse_whitespace(self.subject)
        lines = [
            f"Subject: {self.subject}",
            f"Action: {self.action}",
            f"Expectation: {self.expectation}",
            f"Warnings: {_join_warnings(self.warnings)}",
            f"Pass: {self.pass_condition}",
        ]
        if self.notes:
            lines.append(f"Notes: {self.notes}")
        return collapse_whitespace(" ".join(lines))

    def caveats(self) -> tuple[str, ...]:
        return tuple(c for c in (*self.warnings, self.notes or "") if c and c.strip())


def _join_warnings(warnings: Sequence[str]) -> str:
    cleaned = [w.strip().rstrip(".") for w in warnings if w and w.strip()]
    return "; ".join(cleaned)
