import pytest

from pynbbuild import command_registry
from pynbbuild.command_registry import (
    CommandRegistrationError,
    build_parser,
    register_command,
)


@pytest.fixture
def registry(monkeypatch):
    monkeypatch.setattr(command_registry, "_COMMAND_SPECS", {})
    return command_registry


def test_signature_becomes_arguments(registry):
    @register_command("demo", help={"path": "where"})
    def do_thing(path, count=3, dry_run=False, label=None, verbose=0):
        return path, count, dry_run, label, verbose

    parser = build_parser()
    args = parser.parse_args(
        ["do-thing", "here", "--count", "5", "--dry-run", "-vv"]
    )
    assert args.path == "here"
    assert args.count == 5
    assert args.dry_run is True
    assert args.label is None
    assert args.verbose == 2
    assert args._handler is do_thing


def test_duplicate_rejected(registry):
    @register_command("one")
    def same():
        pass

    with pytest.raises(CommandRegistrationError):

        @register_command("two")
        def same():  # noqa: F811
            pass
