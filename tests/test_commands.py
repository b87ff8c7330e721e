"""Tests for the command registry and command helpers."""

from __future__ import annotations

import pytest

from brewer.modules import failures as F
from brewer.modules.commands import (
    COMMANDS,
    CommandRegistry,
    build_context,
    human_size,
    name_from_url,
    unknown_command,
    usage_text,
)
from tests.helpers import string_console


@pytest.fixture
def registry(settings):
    ctx = build_context(settings.with_flags(log_level="error"), console=string_console(),
                        err_console=string_console())
    return CommandRegistry(ctx)


@pytest.mark.parametrize("alias, canonical", [
    ("homepage", "home"), ("ls", "list"), ("ln", "link"), ("rm", "uninstall"),
    ("remove", "uninstall"), ("up", "update"), ("-S", "search"), ("dependencies", "deps"),
])
def test_aliases_resolve_to_canonical_verbs(registry, alias, canonical) -> None:
    assert registry.canonical(alias) == canonical
    assert registry.get(alias) is registry.get(canonical)
    assert alias in registry


def test_every_command_is_registered_once(registry) -> None:
    assert sorted(registry.commands) == sorted(cls.name for cls in COMMANDS)
    assert "frobnicate" not in registry
    assert registry.get("frobnicate") is None


def test_usage_lists_every_verb() -> None:
    text = usage_text()
    for cls in COMMANDS:
        assert cls.name in text


def test_unknown_command_never_shows_usage() -> None:
    assert unknown_command("frob") == F.UsageError("Unknown command: frob", show_usage=False)
    assert "git rebase" in unknown_command("rebase").message


def test_parse_splits_options_and_names(registry) -> None:
    parsed = registry.get("create").parse(["http://x/y-1.0.tar.gz", "--name=y"])
    assert parsed.names == ["http://x/y-1.0.tar.gz"]
    assert parsed.options == {"--name": "y"}


@pytest.mark.parametrize("value, expected", [
    ("http://ftp.gnu.org/gnu/wget/wget-1.12.tar.bz2", ("wget", "1.12")),
    ("http://example.com/Foo_Bar-v2.0.tgz", ("foo_bar", "2.0")),
    ("libxml2-2.7.8", ("libxml2", "2.7.8")),
    ("project", ("project", None)),
])
def test_name_from_url(value, expected) -> None:
    assert name_from_url(value) == expected


@pytest.mark.parametrize("size, expected", [
    (0, "0B"), (1023, "1023B"), (2048, "2.0K"), (5 * 1024 ** 2, "5.0M"), (3 * 1024 ** 4, "3072.0G"),
])
def test_human_size(size, expected) -> None:
    assert human_size(size) == expected


def test_parse_store_true_flag(registry) -> None:
    parsed = registry.get("ls").parse(["--unbrewed", "extra"])
    assert parsed.options == {"--unbrewed": True}
    assert parsed.names == ["extra"]


@pytest.mark.parametrize("args, message", [
    (["--bogus"], "Unknown option --bogus for list"),
    (["--bogus=1", "x"], "Unknown option --bogus for list"),
    (["--unbrewed=yes"], "ignored explicit argument 'yes' for list"),
])
def test_parse_errors_are_usage_errors(registry, args, message) -> None:
    failure = registry.get("list").parse(args)
    assert isinstance(failure, F.UsageError)
    assert message in failure.message
    assert failure.show_usage


def test_parse_missing_arguments(registry) -> None:
    assert registry.get("deps").parse([]) == F.MissingArgument(F.FORMULA)
    assert registry.get("unlink").parse([]) == F.MissingArgument(F.KEG)
    fault = registry.get("unlink").parse([".."])
    assert isinstance(fault, F.ExecutionFault) and fault.message.startswith("No such keg:")
