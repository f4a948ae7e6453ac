"""Schema inspection and migration commands."""

from typing import Annotated

import typer

from rowshape.cli.context import CLIContext
from rowshape.cli.output import OutputFormatter
from rowshape.cli.parsing import resolve

app = typer.Typer(help="Inspect and migrate record tables")

RecordArg = Annotated[str, typer.Argument(help="Record type as module:Class")]


@app.command("tables")
def schema_tables(ctx: typer.Context) -> None:
    """List tables in the database."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        tables = cli_ctx.get_db().list_tables()
        if cli_ctx.json_output:
            formatter.print_data(tables)
        else:
            formatter.print_table(
                f"Tables ({len(tables)} total)",
                [{"Name": name} for name in tables],
                ["Name"],
            )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("columns")
def schema_columns(
    ctx: typer.Context,
    table_name: Annotated[str, typer.Argument(help="Table name")],
) -> None:
    """Show the live columns of a table."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        columns = cli_ctx.get_db().columns(table_name)
        if columns is None:
            raise ValueError(f"Table '{table_name}' does not exist")
        formatter.print_columns(table_name, columns)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("describe")
def schema_describe(ctx: typer.Context, record: RecordArg) -> None:
    """Show the columns derived from a record type.

    Examples:

        rowshape schema describe models:Contact
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        _, shape = resolve(record)
        formatter.print_shape(shape)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)


@app.command("plan")
def schema_plan(ctx: typer.Context, record: RecordArg) -> None:
    """Show the migration steps reconcile would run, without running them."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        record_type, shape = resolve(record)
        steps = cli_ctx.get_db().plan(record_type)
        formatter.print_plan(shape.table_name, steps)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("reconcile")
def schema_reconcile(
    ctx: typer.Context,
    record: RecordArg,
    allow_destructive: Annotated[
        bool,
        typer.Option(
            "--allow-destructive/--safe",
            envvar="ROWSHAPE_ALLOW_DESTRUCTIVE",
            help="Allow dropping the table when no data-preserving migration exists",
        ),
    ] = False,
) -> None:
    """Create or migrate the table of a record type.

    Examples:

        rowshape schema reconcile models:Contact
        rowshape schema reconcile models:Contact --allow-destructive
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        record_type, shape = resolve(record)
        result = cli_ctx.get_db(allow_destructive=allow_destructive).reconcile(record_type)
        if result.changed:
            formatter.print_success(
                f"Table '{shape.table_name}' migrated",
                {"steps": [s.kind.value for s in result.steps]},
            )
        else:
            formatter.print_success(f"Table '{shape.table_name}' is up to date", {"steps": []})
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
