from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import orjson
import typer

from logicform.config import Settings
from logicform.fields import fields_from_dicts, parse_fields
from logicform.logic import describe_rule, rules_from_dicts, validate_rules
from logicform.schema import evaluate_form

cli = typer.Typer(add_completion=False, help="Form builder with conditional logic")


def _load_document(path: Path) -> dict[str, Any]:
    try:
        document = orjson.loads(path.read_bytes())
    except OSError as exc:
        typer.echo(f"cannot read {path}: {exc}", err=True)
        raise typer.Exit(code=2)
    except orjson.JSONDecodeError as exc:
        typer.echo(f"{path} is not valid JSON: {exc}", err=True)
        raise typer.Exit(code=2)
    if not isinstance(document, dict):
        typer.echo(f"{path} must contain a JSON object", err=True)
        raise typer.Exit(code=2)
    return document


def _echo_json(value: Any) -> None:
    typer.echo(orjson.dumps(value, option=orjson.OPT_INDENT_2).decode("utf-8"))


def run_server(host: str | None, port: int | None) -> None:
    import uvicorn

    from logicform.app import create_app

    settings = Settings()
    resolved_host = host or settings.host
    resolved_port = port if port is not None else settings.port
    uvicorn.run(create_app(settings), host=resolved_host, port=resolved_port)


@cli.callback()
def main(
    log_level: str | None = typer.Option(None, help="Logging level (defaults to LOG_LEVEL)"),
) -> None:
    level = (log_level or Settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
def run(
    host: str | None = typer.Option(None, help="Address to bind"),
    port: int | None = typer.Option(None, help="Port to bind"),
) -> None:
    """Serve the HTTP API."""
    run_server(host, port)


@cli.command()
def evaluate(
    form_path: Path = typer.Argument(..., help="Exported form document (JSON)"),
    values_path: Path = typer.Argument(..., help="Field values (JSON object)"),
) -> None:
    """Print the field projection for a set of values."""
    form = _load_document(form_path)
    values = _load_document(values_path)
    _echo_json(evaluate_form(form, values))


@cli.command()
def check(
    form_path: Path = typer.Argument(..., help="Exported form document (JSON)"),
) -> None:
    """Validate the fields and logic of an exported form document."""
    document = _load_document(form_path)
    fields, errors = parse_fields(document.get("fields", []))
    logic, logic_errors, warnings = validate_rules(
        document.get("logic", []), [field["id"] for field in fields]
    )
    errors.extend(logic_errors)

    for message in errors:
        typer.echo(f"error: {message}")
    for message in warnings:
        typer.echo(f"warning: {message}")
    if errors:
        raise typer.Exit(code=1)

    typed_fields = fields_from_dicts(fields)
    for rule in rules_from_dicts(logic):
        state = "" if rule.enabled else " [disabled]"
        typer.echo(f"{rule.name or rule.id}{state}: {describe_rule(rule, typed_fields)}")
    typer.echo(f"ok: {len(fields)} fields, {len(logic)} rules")


if __name__ == "__main__":
    cli()
