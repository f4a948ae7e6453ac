"""Output formatting for CLI commands."""

import dataclasses
import json
from typing import Any

from pydantic import BaseModel
from rich.console import Console
from rich.panel import Panel
from rich.pretty import pprint
from rich.table import Table

from rowshape.core.types import LiveColumn, MigrationStep
from rowshape.exceptions import RowShapeError
from rowshape.schema.descriptors import RecordShape

console = Console()


def record_to_dict(record: Any) -> dict[str, Any]:
    """Plain dict of a dataclass or pydantic record."""
    if isinstance(record, BaseModel):
        return record.model_dump()
    return dataclasses.asdict(record)


class OutputFormatter:
    """Formats output for terminal or JSON mode."""

    def __init__(self, json_mode: bool = False) -> None:
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode

    def print_table(
        self,
        title: str,
        data: list[dict[str, Any]],
        columns: list[str],
    ) -> None:
        """Print data as Rich table or JSON array."""
        if self.json_mode:
            print(json.dumps(data, default=str, indent=2))
        else:
            table = Table(title=title, show_header=True, header_style="bold magenta")
            for col in columns:
                table.add_column(col)
            for row in data:
                table.add_row(*[str(row.get(col, "")) for col in columns])
            console.print(table)

    def print_shape(self, shape: RecordShape) -> None:
        """Print the columns derived from a record type."""
        fields = [f.model_dump(mode="json") for f in shape.fields.values()]
        if self.json_mode:
            print(
                json.dumps(
                    {"record_type": shape.record_type.__qualname__, "table": shape.table_name, "fields": fields},
                    indent=2,
                )
            )
            return
        console.print(f"\n[bold]Record:[/bold] {shape.record_type.__qualname__}")
        console.print(f"Table: {shape.table_name}")
        table = Table(show_header=True, header_style="bold cyan")
        for col in ("Name", "Type", "Nullable", "Primary Key"):
            table.add_column(col)
        for f in shape.fields.values():
            table.add_row(f.name, f.logical_type.value, "✓" if f.nullable else "", "✓" if f.is_primary_key else "")
        console.print(table)

    def print_columns(self, table_name: str, columns: list[LiveColumn]) -> None:
        """Print live columns of a table."""
        self.print_table(
            f"Columns of {table_name}",
            [
                {
                    "name": c.name,
                    "type": c.stored_type,
                    "not_null": c.not_null,
                    "primary_key": c.is_primary_key,
                }
                for c in columns
            ],
            ["name", "type", "not_null", "primary_key"],
        )

    def print_plan(self, table_name: str, steps: list[MigrationStep]) -> None:
        """Print migration steps (empty plan means the table is up to date)."""
        if self.json_mode:
            print(
                json.dumps(
                    {"table": table_name, "steps": [s.model_dump(mode="json") for s in steps]},
                    indent=2,
                )
            )
            return
        if not steps:
            console.print(f"✓ Table '{table_name}' is up to date", style="green")
            return
        for i, step in enumerate(steps, 1):
            style = "bold red" if step.destructive else "yellow"
            columns = ", ".join(f.name for f in step.fields)
            console.print(f"{i}. [{style}]{step.kind.value}[/{style}] {table_name} ({columns})")
            if step.description:
                console.print(f"   {step.description}", style="dim")

    def print_success(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Print success message."""
        if self.json_mode:
            output = {"success": True, "message": message}
            if details:
                output.update(details)
            print(json.dumps(output, default=str, indent=2))
        else:
            console.print(f"✓ {message}", style="green")
            if details:
                for key, value in details.items():
                    console.print(f"  {key}: {value}", style="dim")

    def print_error(self, error: Exception) -> None:
        """Print error message."""
        if self.json_mode:
            if isinstance(error, RowShapeError):
                print(json.dumps(error.to_dict(), default=str, indent=2))
            else:
                print(json.dumps({"error": str(error)}, indent=2))
        else:
            error_text = str(error)
            if isinstance(error, RowShapeError) and error.context:
                context_str = "\n".join(f"{k}: {v}" for k, v in error.context.items())
                error_text = f"{error_text}\n\n{context_str}"

            console.print(Panel(error_text, title="[red]Error[/red]", border_style="red"))

    def print_data(self, data: Any) -> None:
        """Print generic data (dict, list, etc.)."""
        if self.json_mode:
            print(json.dumps(data, default=str, indent=2))
        else:
            pprint(data, console=console, expand_all=True)
