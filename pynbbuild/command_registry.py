import argparse
import inspect


class CommandRegistrationError(Exception):
    """Raised when two handlers claim the same subcommand name."""


# subcommand name -> handler, help and argparse arguments
_COMMAND_SPECS = {}


def _argument_for(parameter, help_text=None):
    flags = []
    kwargs = {}
    if parameter.default is inspect.Parameter.empty:
        flags.append(parameter.name)
    else:
        flags.append("--" + parameter.name.replace("_", "-"))
        kwargs["default"] = parameter.default
        if isinstance(parameter.default, bool):
            kwargs["action"] = (
                "store_false" if parameter.default else "store_true"
            )
        elif parameter.name == "verbose" and parameter.default == 0:
            # -v / -vv style
            flags.insert(0, "-v")
            kwargs["action"] = "count"
        elif parameter.default is not None:
            kwargs["type"] = type(parameter.default)
    if help_text is not None:
        kwargs["help"] = help_text.strip()
    return {"flags": flags, "kwargs": kwargs, "dest": parameter.name}


def register_command(help_text, description=None, help=None):
    """Register ``func`` as a subcommand named after it.

    Positional parameters become positional arguments and keyword
    parameters become ``--options`` whose type follows the default.
    """

    def decorator(func):
        name = func.__name__.replace("_", "-")
        if name in _COMMAND_SPECS:
            raise CommandRegistrationError(
                f"Command '{name}' already registered"
            )
        argument_help = help if help is not None else {}
        arguments = []
        for parameter in inspect.signature(func).parameters.values():
            if parameter.kind in (
                inspect.Parameter.VAR_POSITIONAL,
                inspect.Parameter.VAR_KEYWORD,
            ):
                continue
            arguments.append(
                _argument_for(parameter, argument_help.get(parameter.name))
            )
        _COMMAND_SPECS[name] = {
            "handler": func,
            "help": help_text.strip(),
            "description": (
                description if description is not None else help_text
            ).strip(),
            "arguments": arguments,
        }
        return func

    return decorator


def build_parser(prog=None):
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Build and run notebooks through a compile cache.",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="command")
    for name, spec in sorted(_COMMAND_SPECS.items()):
        sub = subparsers.add_parser(
            name, help=spec["help"], description=spec["description"]
        )
        for argument in spec["arguments"]:
            kwargs = dict(argument["kwargs"])
            if argument["flags"][0].startswith("-"):
                # argparse refuses dest= for positionals
                kwargs["dest"] = argument["dest"]
            sub.add_argument(*argument["flags"], **kwargs)
        sub.set_defaults(_handler=spec["handler"])
    return parser
