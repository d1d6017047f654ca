from __future__ import annotations

from typing import List


class CalculationLog(list):
    """Human-readable trace of a scheduling run, one line per entry."""

    def log(self, message: str = "") -> None:
        self.append(message)

    def banner(self, *lines: str) -> None:
        self.append("=" * 70)
        self.extend(lines)
        self.append("=" * 70)

    def section(self, title: str) -> None:
        if self:
            self.append("")
        self.append(title)
        self.append("-" * 50)

    def warn(self, message: str) -> None:
        self.append(f"WARNING: {message}")

    @property
    def warnings(self) -> List[str]:
        return [line for line in self if line.startswith("WARNING: ")]
