"""Record read/delete commands."""

from typing import Annotated

import typer

from rowshape.cli.context import CLIContext
from rowshape.cli.output import OutputFormatter, record_to_dict
from rowshape.cli.parsing import parse_key, resolve

app = typer.Typer(help="Read and delete records")

RecordArg = Annotated[str, typer.Argument(help="Record type as module:Class")]


@app.command("list")
def data_list(ctx: typer.Context, record: RecordArg) -> None:
    """List every stored record of a type.

    Examples:

        rowshape data list models:Contact
        rowshape --json data list models:Contact
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        record_type, shape = resolve(record)
        rows = [record_to_dict(r) for r in cli_ctx.get_db().get_all(record_type)]
        formatter.print_table(f"{shape.table_name} ({len(rows)} records)", rows, shape.column_names)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("get")
def data_get(
    ctx: typer.Context,
    record: RecordArg,
    key: Annotated[str, typer.Argument(help="Primary key value")],
) -> None:
    """Show one record by primary key."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        record_type, shape = resolve(record)
        found = cli_ctx.get_db().get(record_type, parse_key(key, shape))
        if found is None:
            raise ValueError(f"No '{shape.table_name}' record with key '{key}'")
        formatter.print_data(record_to_dict(found))
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("delete")
def data_delete(
    ctx: typer.Context,
    record: RecordArg,
    keys: Annotated[list[str], typer.Argument(help="Primary key values")],
) -> None:
    """Delete records by primary key."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        record_type, shape = resolve(record)
        count = cli_ctx.get_db().delete_many(record_type, [parse_key(k, shape) for k in keys])
        formatter.print_success(f"Deleted from '{shape.table_name}'", {"keys": count})
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
