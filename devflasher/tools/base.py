"""Platform tool interfaces."""

from __future__ import annotations

from typing import Protocol


class Tool(Protocol):
    name: str

    def query(self, *args: str, serial: str | None = None, combined: bool = False) -> str | None:
        """Run to completion and return captured output, or None if the invocation failed."""

    def run(self, *args: str, serial: str | None = None) -> bool:
        """Run to completion discarding output and report whether it succeeded."""

    def trigger(self, *args: str, serial: str | None = None) -> None:
        """Launch without waiting for the command to finish."""
