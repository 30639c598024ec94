"""Command registry: normalization, overwrite and handler shapes."""
from __future__ import annotations

from typing import List

import pytest

from ftp_engine.commands import CommandRegistry, CommandShape, adapt


def test_labels_are_stored_upper_case_and_looked_up_case_insensitively() -> None:
    registry = CommandRegistry()
    info = registry.register("retr", "RETR <file>", lambda args: None)

    assert info.label == "RETR"
    assert registry.lookup("RETR") is info
    assert registry.lookup("Retr") is info
    assert "retr" in registry
    assert registry.labels() == ["RETR"]


def test_missing_command() -> None:
    registry = CommandRegistry()
    assert registry.lookup("NOPE") is None
    assert registry.help("NOPE") is None
    assert "NOPE" not in registry


def test_last_registration_wins() -> None:
    registry = CommandRegistry()
    first = registry.register("NOOP", "first", lambda args: None)
    second = registry.register("noop", "second", lambda args: None, needs_auth=False)

    assert registry.lookup("NOOP") is second
    assert registry.lookup("NOOP") is not first
    assert registry.help("noop") == "second"
    assert len(registry) == 1


def test_needs_auth_defaults_to_true() -> None:
    registry = CommandRegistry()
    assert registry.register("LIST", "LIST", lambda args: None).needs_auth
    assert not registry.register("USER", "USER", lambda args: None, needs_auth=False).needs_auth


def test_site_registry_leaves_auth_to_the_site_verb() -> None:
    registry = CommandRegistry(site=True)
    info = registry.register("chmod", "CHMOD <mode> <file>", lambda args: None, needs_auth=True)

    assert info.site
    assert not info.needs_auth
    assert [i.label for i in registry] == ["CHMOD"]


def test_shapes() -> None:
    calls: List[object] = []

    no_args = adapt(lambda: calls.append("none"), CommandShape.NO_ARGS)
    single = adapt(calls.append, CommandShape.SINGLE_ARG)
    full = adapt(calls.append, CommandShape.ARGS)

    no_args(["PWD", "ignored"])
    single(["CWD", "My", "Documents"])
    single(["CWD"])
    full(["LIST", "-la", "/pub"])

    assert calls == ["none", "My Documents", "", ["LIST", "-la", "/pub"]]


def test_registry_adapts_at_registration() -> None:
    seen: List[str] = []
    registry = CommandRegistry()
    info = registry.register("USER", "USER <name>", seen.append, shape=CommandShape.SINGLE_ARG)

    info.command(["USER", "bob"])
    assert info.shape is CommandShape.SINGLE_ARG
    assert seen == ["bob"]


def test_site_handlers_see_the_full_line() -> None:
    seen: List[object] = []
    registry = CommandRegistry(site=True)
    echo = registry.register("ECHO", "ECHO <text>", seen.append, shape=CommandShape.SINGLE_ARG)
    chmod = registry.register("CHMOD", "CHMOD <mode> <file>", seen.append)

    echo.command(["SITE", "ECHO", "Hello", "World"])
    echo.command(["SITE", "ECHO"])
    chmod.command(["SITE", "CHMOD", "755", "run.sh"])

    assert seen == ["Hello World", "", ["SITE", "CHMOD", "755", "run.sh"]]


def test_unknown_shape() -> None:
    with pytest.raises(ValueError):
        adapt(lambda: None, "bogus")  # type: ignore[arg-type]
