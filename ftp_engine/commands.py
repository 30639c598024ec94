# -*- coding: utf-8 -*-
"""Command registry used by a session to route a verb to its handler.

A handler can take one of three shapes:

- ``NO_ARGS``     : ``handler()``
- ``SINGLE_ARG``  : ``handler(arg)`` where ``arg`` is every token after the verb
  (after the sub-verb for SITE commands) joined by a single space (``""`` when
  there is none)
- ``ARGS``        : ``handler(args)`` with the full token list, verb included;
  SITE handlers get ``["SITE", SUB, ...]``

The first two are adapted once, at registration time, so the dispatcher only
ever calls ``info.command(args)``.

Registering a label that already exists replaces the previous entry. Hosts
rely on this to override the built-in commands with their own.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional

Command = Callable[[List[str]], None]


class CommandShape(Enum):
    NO_ARGS = "no_args"
    SINGLE_ARG = "single_arg"
    ARGS = "args"


def adapt(handler: Callable, shape: CommandShape, first: int = 1) -> Command:
    """Wrap ``handler`` so it can be called with the tokenized command line.

    ``first`` is the index of the first argument token: 1 for top-level verbs,
    2 for SITE sub-commands whose token list still starts with ``SITE``.
    """
    if shape is CommandShape.ARGS:
        return handler
    if shape is CommandShape.NO_ARGS:
        def run_no_args(args: List[str]) -> None:
            handler()
        return run_no_args
    if shape is CommandShape.SINGLE_ARG:
        def run_single_arg(args: List[str]) -> None:
            handler(" ".join(args[first:]))
        return run_single_arg
    raise ValueError(f"Unknown command shape: {shape!r}")


@dataclass(frozen=True)
class CommandInfo:
    label: str
    help: str
    command: Command
    shape: CommandShape = CommandShape.ARGS
    needs_auth: bool = True
    site: bool = False


class CommandRegistry:
    """Maps upper-case verbs to :class:`CommandInfo` entries."""

    def __init__(self, site: bool = False) -> None:
        self.site = site
        self._commands: Dict[str, CommandInfo] = {}

    def register(
        self,
        label: str,
        help: str,
        handler: Callable,
        needs_auth: bool = True,
        shape: CommandShape = CommandShape.ARGS,
    ) -> CommandInfo:
        label = label.upper()
        # SITE sub-commands are gated by the SITE verb itself
        if self.site:
            needs_auth = False
        info = CommandInfo(
            label=label,
            help=help,
            command=adapt(handler, shape, first=2 if self.site else 1),
            shape=shape,
            needs_auth=needs_auth,
            site=self.site,
        )
        self._commands[label] = info
        return info

    def lookup(self, label: str) -> Optional[CommandInfo]:
        return self._commands.get(label.upper())

    def help(self, label: str) -> Optional[str]:
        info = self.lookup(label)
        return info.help if info is not None else None

    def labels(self) -> List[str]:
        return sorted(self._commands)

    def __contains__(self, label: object) -> bool:
        return isinstance(label, str) and label.upper() in self._commands

    def __iter__(self) -> Iterator[CommandInfo]:
        return iter(self._commands.values())

    def __len__(self) -> int:
        return len(self._commands)
