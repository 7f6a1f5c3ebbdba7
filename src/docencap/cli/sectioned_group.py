"""Top level click group that lists its commands in sections.

Each section names the commands it holds and the error kinds those commands
can end with, so that ``docencap --help`` documents every exit status next to
the commands that produce it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

from click import Command, Group

from docencap.exceptions import EXIT_NO_ERROR, EncapsulationError

if TYPE_CHECKING:
    from click import Context, HelpFormatter


@dataclass(frozen=True)
class HelpSection:
    """A heading in the help output with its commands and exit statuses."""

    name: str
    description: str
    commands: tuple[Command, ...]
    errors: tuple[type[EncapsulationError], ...] = ()

    @property
    def heading(self) -> str:
        return f"[{self.name.upper()}] {self.description}"

    def exit_codes(self) -> list[tuple[str, str]]:
        """Rows of ``(status, summary)`` in ascending status order."""
        rows = [(str(EXIT_NO_ERROR), "success")]
        for error in sorted(self.errors, key=lambda e: e.exit_code):
            rows.append((str(error.exit_code), error.summary))
        return rows


class SectionedGroup(Group):
    """A click group built from :class:`HelpSection` declarations.

    The commands of every section are registered on the group, and
    :meth:`format_commands` lists them section by section.

    Examples
    --------
    >>> section = HelpSection("inspection", "Inspect documents", (dcm_extract,))  # doctest: +SKIP
    >>> @click.group(cls=SectionedGroup, sections=[section])  # doctest: +SKIP
    ... def cli(): ...
    """

    def __init__(self, *args, sections: Sequence[HelpSection] = (), **kwargs):  # type: ignore
        super().__init__(*args, **kwargs)
        self.sections = tuple(sections)
        for section in self.sections:
            for command in section.commands:
                if command.name in self.commands:
                    msg = f"Command '{command.name}' is listed in two sections"
                    raise ValueError(msg)
                self.add_command(command)

    def format_commands(self, ctx: Context, formatter: HelpFormatter) -> None:
        for section in self.sections:
            names = [cmd.name for cmd in section.commands if cmd.name is not None]
            if not names:
                continue
            limit = formatter.width - 6 - max(len(name) for name in names)
            with formatter.section(section.heading):
                formatter.write_dl(
                    [
                        (cmd.name, cmd.get_short_help_str(limit))
                        for cmd in section.commands
                        if cmd.name is not None
                    ]
                )
                if section.errors:
                    formatter.write_paragraph()
                    formatter.write_text("Exit statuses:")
                    with formatter.indentation():
                        formatter.write_dl(section.exit_codes())
