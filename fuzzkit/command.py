"""A command line with editable arguments and output redirection."""

from __future__ import annotations

from typing import Iterable

__all__ = ["Command", "IGNORE_REMAINING_ARGS"]

IGNORE_REMAINING_ARGS = "-ignore_remaining_args=1"


class Command:
    """Arguments of a command plus where its output goes.

    Everything from ``-ignore_remaining_args=1`` onwards is fixed: edits and
    lookups only touch the arguments before it.
    """

    IGNORE_REMAINING_ARGS = IGNORE_REMAINING_ARGS

    def __init__(self, args: Iterable[str] = ()) -> None:
        self._args: list[str] = list(args)
        self.out_and_err_combined = False
        self.output_file = ""

    @property
    def arguments(self) -> list[str]:
        """All arguments, including those after the immutable marker."""
        return list(self._args)

    def _end_mutable(self) -> int:
        try:
            return self._args.index(IGNORE_REMAINING_ARGS)
        except ValueError:
            return len(self._args)

    def _mutable(self) -> list[str]:
        return self._args[: self._end_mutable()]

    def has_argument(self, arg: str) -> bool:
        return arg in self._mutable()

    def add_argument(self, arg: str) -> None:
        self._args.insert(self._end_mutable(), arg)

    def add_arguments(self, args: Iterable[str]) -> None:
        end = self._end_mutable()
        self._args[end:end] = list(args)

    def remove_argument(self, arg: str) -> None:
        end = self._end_mutable()
        self._args[:end] = [a for a in self._args[:end] if a != arg]

    @staticmethod
    def _flag_prefix(flag: str) -> str:
        return f"-{flag}="

    def has_flag(self, flag: str) -> bool:
        prefix = self._flag_prefix(flag)
        return any(a.startswith(prefix) for a in self._mutable())

    def flag_value(self, flag: str) -> str:
        """Value of the first ``-flag=...`` argument, or an empty string."""
        prefix = self._flag_prefix(flag)
        return next(
            (a[len(prefix):] for a in self._mutable() if a.startswith(prefix)), ""
        )

    def add_flag(self, flag: str, value: str) -> None:
        self.add_argument(f"{self._flag_prefix(flag)}{value}")

    def remove_flag(self, flag: str) -> None:
        prefix = self._flag_prefix(flag)
        end = self._end_mutable()
        self._args[:end] = [a for a in self._args[:end] if not a.startswith(prefix)]

    def has_output_file(self) -> bool:
        return bool(self.output_file)

    def combine_out_and_err(self, combine: bool = True) -> None:
        self.out_and_err_combined = combine

    def copy(self) -> Command:
        other = Command(self._args)
        other.out_and_err_combined = self.out_and_err_combined
        other.output_file = self.output_file
        return other

    def __str__(self) -> str:
        parts = list(self._args)
        if self.has_output_file():
            parts.append(f">{self.output_file}")
        if self.out_and_err_combined:
            parts.append("2>&1")
        return " ".join(parts)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._args!r})"