"""CLI command tests for rowshape."""

import json
import uuid
from pathlib import Path

import pytest
from typer.testing import CliRunner

from rowshape import Database
from rowshape.cli.context import DEFAULT_DATABASE_URL, get_database_url
from rowshape.cli.main import app
from rowshape.cli.parsing import load_record_type, parse_key
from rowshape.schema.descriptors import describe

runner = CliRunner()

MODELS = '''
from dataclasses import dataclass
from typing import ClassVar


@dataclass
class Note:
    __primary_key__: ClassVar[str] = "id"
    id: int
    title: str
    body: str | None = None


@dataclass
class NoteByTitle:
    __primary_key__: ClassVar[str] = "title"
    __table_name__: ClassVar[str] = "Note"
    id: int
    title: str


class Plain:
    pass
'''


@pytest.fixture
def models(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Importable module of record types; returns its (unique) name."""
    name = f"models_{uuid.uuid4().hex[:8]}"
    (tmp_path / f"{name}.py").write_text(MODELS)
    monkeypatch.chdir(tmp_path)
    monkeypatch.syspath_prepend(str(tmp_path))
    monkeypatch.delenv("ROWSHAPE_ALLOW_DESTRUCTIVE", raising=False)
    return name


@pytest.fixture
def seeded(models: str, db_url: str) -> str:
    """Database with two notes stored."""
    note = load_record_type(f"{models}:Note")
    with Database(db_url) as db:
        db.insert(note(1, "first"), note(2, "second", "body"))
    return models


def invoke(db_url: str, *args: str):
    return runner.invoke(app, ["-d", db_url, "--json", *args])


class TestVersionCommand:
    def test_version_output(self) -> None:
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "rowshape v" in result.stdout


class TestContext:
    def test_url_priority(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ROWSHAPE_URL", raising=False)
        assert get_database_url(None) == DEFAULT_DATABASE_URL
        monkeypatch.setenv("ROWSHAPE_URL", "sqlite:///env.db")
        assert get_database_url(None) == "sqlite:///env.db"
        assert get_database_url("sqlite:///arg.db") == "sqlite:///arg.db"


class TestParsing:
    def test_load_record_type(self, models: str) -> None:
        note = load_record_type(f"{models}:Note")
        assert note.__name__ == "Note"

    @pytest.mark.parametrize("reference", ["no_colon", ":Note", "missing_module_xyz:Note"])
    def test_bad_reference(self, reference: str) -> None:
        with pytest.raises(ValueError):
            load_record_type(reference)

    def test_not_a_record(self, models: str) -> None:
        with pytest.raises(ValueError, match="not a dataclass"):
            load_record_type(f"{models}:Plain")

    def test_parse_key(self, models: str) -> None:
        shape = describe(load_record_type(f"{models}:Note"))
        assert parse_key("42", shape) == 42
        with pytest.raises(ValueError, match="Invalid key"):
            parse_key("forty-two", shape)


class TestSchemaCommands:
    """Test schema inspection and migration commands."""

    def test_tables_empty(self, db_url: str) -> None:
        result = invoke(db_url, "schema", "tables")
        assert result.exit_code == 0
        assert json.loads(result.stdout) == []

    def test_tables_rich(self, seeded: str, db_url: str) -> None:
        result = runner.invoke(app, ["-d", db_url, "schema", "tables"])
        assert result.exit_code == 0
        assert "Note" in result.stdout

    def test_describe(self, models: str, db_url: str) -> None:
        result = invoke(db_url, "schema", "describe", f"{models}:Note")
        assert result.exit_code == 0, result.stdout
        data = json.loads(result.stdout)
        assert data["table"] == "Note"
        assert [f["name"] for f in data["fields"]] == ["id", "title", "body"]
        assert data["fields"][0]["logical_type"] == "INTEGER"
        assert data["fields"][0]["is_primary_key"] is True

    def test_plan_does_not_create(self, models: str, db_url: str) -> None:
        result = invoke(db_url, "schema", "plan", f"{models}:Note")
        assert result.exit_code == 0, result.stdout
        data = json.loads(result.stdout)
        assert [s["kind"] for s in data["steps"]] == ["create"]
        assert json.loads(invoke(db_url, "schema", "tables").stdout) == []

    def test_reconcile_creates_then_is_up_to_date(self, models: str, db_url: str) -> None:
        result = invoke(db_url, "schema", "reconcile", f"{models}:Note")
        assert result.exit_code == 0, result.stdout
        data = json.loads(result.stdout)
        assert data["success"] is True
        assert data["steps"] == ["create"]

        result = invoke(db_url, "schema", "reconcile", f"{models}:Note")
        assert json.loads(result.stdout)["message"] == "Table 'Note' is up to date"

    def test_columns(self, seeded: str, db_url: str) -> None:
        result = invoke(db_url, "schema", "columns", "Note")
        assert result.exit_code == 0
        columns = json.loads(result.stdout)
        assert [c["name"] for c in columns] == ["id", "title", "body"]
        assert columns[0]["primary_key"] is True

    def test_columns_missing_table(self, db_url: str) -> None:
        result = invoke(db_url, "schema", "columns", "Nope")
        assert result.exit_code == 1
        assert "does not exist" in json.loads(result.stdout)["error"]

    def test_destructive_reconcile_needs_flag(self, seeded: str, db_url: str) -> None:
        result = invoke(db_url, "schema", "reconcile", f"{seeded}:NoteByTitle")
        assert result.exit_code == 1
        error = json.loads(result.stdout)
        assert error["error"] == "DestructiveMigrationError"
        assert error["context"]["table_name"] == "Note"

        rows = json.loads(invoke(db_url, "data", "list", f"{seeded}:Note").stdout)
        assert len(rows) == 2

        result = invoke(db_url, "schema", "reconcile", f"{seeded}:NoteByTitle", "--allow-destructive")
        assert result.exit_code == 0, result.stdout
        assert json.loads(result.stdout)["steps"] == ["reset"]

    def test_invalid_reference(self, db_url: str) -> None:
        result = invoke(db_url, "schema", "describe", "nonsense")
        assert result.exit_code == 1
        assert "Invalid record reference" in json.loads(result.stdout)["error"]


class TestDataCommands:
    """Test record read/delete commands."""

    def test_list(self, seeded: str, db_url: str) -> None:
        result = invoke(db_url, "data", "list", f"{seeded}:Note")
        assert result.exit_code == 0, result.stdout
        rows = json.loads(result.stdout)
        assert sorted(r["id"] for r in rows) == [1, 2]

    def test_get(self, seeded: str, db_url: str) -> None:
        result = invoke(db_url, "data", "get", f"{seeded}:Note", "2")
        assert result.exit_code == 0, result.stdout
        assert json.loads(result.stdout) == {"id": 2, "title": "second", "body": "body"}

    def test_get_missing(self, seeded: str, db_url: str) -> None:
        result = invoke(db_url, "data", "get", f"{seeded}:Note", "99")
        assert result.exit_code == 1

    def test_delete(self, seeded: str, db_url: str) -> None:
        result = invoke(db_url, "data", "delete", f"{seeded}:Note", "1", "5")
        assert result.exit_code == 0, result.stdout
        assert json.loads(result.stdout)["keys"] == 2
        rows = json.loads(invoke(db_url, "data", "list", f"{seeded}:Note").stdout)
        assert [r["title"] for r in rows] == ["second"]
