"""Expression CLI commands: eval and parse."""

import json
import logging
from pathlib import Path
from typing import Any

import click
import yaml

from varstore.errors import VarStoreError
from varstore.evaluator import evaluate
from varstore.parser import parse
from varstore.store import VarStore
from varstore.values import UNSET

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if value is UNSET:
        return None
    if isinstance(value, VarStore):
        return f"<store {value.name}>"
    return repr(value)


def _build_store(state_path: Path | None, assignments: tuple[str, ...]) -> VarStore:
    if state_path is not None:
        store = VarStore.from_file("cli", state_path)
        logger.debug("Loaded state from %s", state_path)
    else:
        store = VarStore("cli")

    for item in assignments:
        key, sep, raw = item.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint="--set")
        # Values are YAML scalars/flow collections: 3, true, "x", [1, 2], {a: 1}
        store.set_value(key.strip(), yaml.safe_load(raw) if raw.strip() else None)

    return store


@click.command("eval")
@click.argument("expression")
@click.option(
    "--state",
    "state_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML or JSON file used as the store's base context.",
)
@click.option(
    "--set",
    "assignments",
    multiple=True,
    metavar="KEY=VALUE",
    help="Bind a value (parsed as YAML) before evaluating. Repeatable.",
)
def eval_cmd(expression: str, state_path: Path | None, assignments: tuple[str, ...]):
    """Evaluate EXPRESSION and print the result as JSON."""
    try:
        store = _build_store(state_path, assignments)
        result = evaluate(expression, store)
    except VarStoreError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        raise SystemExit(1)

    if result is UNSET:
        click.echo("undefined")
        return
    click.echo(json.dumps(result, default=_json_default))


@click.command("parse")
@click.argument("expression")
def parse_cmd(expression: str):
    """Print the AST of EXPRESSION and the variables it reads, as YAML."""
    try:
        parsed = parse(expression)
    except VarStoreError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        raise SystemExit(1)

    document = {
        "ast": parsed.node.to_dict(),
        "identifiers": sorted(parsed.identifiers),
    }
    click.echo(yaml.safe_dump(document, sort_keys=False), nl=False)
