"""End-to-end schema evolution through the public API.

Each test stores records under one version of a record type, then reopens
the same database with a later version of the type and checks what survived.
"""

from dataclasses import dataclass
from typing import ClassVar

import pytest
from pydantic import BaseModel

from rowshape import Database, StepKind
from rowshape.exceptions import DestructiveMigrationError


@dataclass
class ItemV1:
    __primary_key__: ClassVar[str] = "sku"
    __table_name__: ClassVar[str] = "items"
    sku: str
    name: str
    quantity: int


@dataclass
class ItemV2:
    """Adds an optional field and widens quantity."""

    __primary_key__: ClassVar[str] = "sku"
    __table_name__: ClassVar[str] = "items"
    sku: str
    name: str
    quantity: float
    location: str | None = None


@dataclass
class ItemV3:
    """Drops name; changes location from text to a number."""

    __primary_key__: ClassVar[str] = "sku"
    __table_name__: ClassVar[str] = "items"
    sku: str
    quantity: float
    location: int | None = None


@dataclass
class ItemV4:
    """Adds a required field: only a reset can satisfy it."""

    __primary_key__: ClassVar[str] = "sku"
    __table_name__: ClassVar[str] = "items"
    sku: str
    quantity: float
    supplier: str


class ItemModel(BaseModel):
    """Same table as ItemV2, declared as a pydantic model."""

    __primary_key__: ClassVar[str] = "sku"
    __table_name__: ClassVar[str] = "items"

    sku: str
    name: str
    quantity: float
    location: str | None = None


@pytest.fixture
def seeded_url(db_url: str) -> str:
    with Database(db_url) as db:
        db.insert(ItemV1("a", "Anvil", 123), ItemV1("b", "Bolt", 7))
    return db_url


class TestSchemaEvolution:
    def test_additive_change_keeps_rows(self, seeded_url: str) -> None:
        with Database(seeded_url) as db:
            rows = {item.sku: item for item in db.get_all(ItemV2)}
        assert rows["a"] == ItemV2("a", "Anvil", 123.0, None)
        assert rows["b"].location is None

    def test_first_write_migrates(self, seeded_url: str) -> None:
        with Database(seeded_url) as db:
            db.insert(ItemV2("c", "Chain", 2.5, "shelf 3"))
            columns = {c.name: c for c in db.columns("items") or []}
            assert columns["quantity"].stored_type == "REAL"
            assert "location" in columns
            assert len(db.get_all(ItemV2)) == 3
            assert db.get(ItemV2, "a") == ItemV2("a", "Anvil", 123.0, None)

    def test_reads_never_migrate(self, seeded_url: str) -> None:
        with Database(seeded_url) as db:
            db.get_all(ItemV2)
            assert [c.name for c in db.columns("items") or []] == ["sku", "name", "quantity"]

    def test_removal_and_incompatible_change(self, seeded_url: str) -> None:
        with Database(seeded_url) as db:
            db.insert(ItemV2("c", "Chain", 2.5, "shelf 3"))
            result = db.reconcile(ItemV3)
            assert [s.kind for s in result.steps] == [StepKind.REBUILD, StepKind.ADD_COLUMN]

            rows = {item.sku: item for item in db.get_all(ItemV3)}
            assert rows["a"] == ItemV3("a", 123.0, None)
            # Incompatible column is recreated empty
            assert rows["c"] == ItemV3("c", 2.5, None)

    def test_required_field_resets(self, seeded_url: str) -> None:
        with Database(seeded_url) as db:
            result = db.reconcile(ItemV4)
            assert [s.kind for s in result.steps] == [StepKind.REBUILD, StepKind.RESET]
            assert db.get_all(ItemV4) == []
            db.insert(ItemV4("z", 1.0, "Acme"))
            assert db.get(ItemV4, "z") == ItemV4("z", 1.0, "Acme")

    def test_reset_refused_when_not_destructive(self, seeded_url: str) -> None:
        with Database(seeded_url, allow_destructive=False) as db:
            assert db.plan(ItemV4)[-1].kind == StepKind.RESET
            with pytest.raises(DestructiveMigrationError):
                db.insert(ItemV4("z", 1.0, "Acme"))
            assert len(db.get_all(ItemV1)) == 2

    def test_dataclass_and_model_share_table(self, seeded_url: str) -> None:
        with Database(seeded_url) as db:
            db.insert(ItemModel(sku="m", name="Mallet", quantity=4))
            assert db.get(ItemV2, "m") == ItemV2("m", "Mallet", 4.0, None)
            assert db.get(ItemModel, "a") == ItemModel(sku="a", name="Anvil", quantity=123.0)

    def test_reconcile_is_idempotent(self, seeded_url: str) -> None:
        with Database(seeded_url) as db:
            assert db.reconcile(ItemV2).changed
            assert not db.reconcile(ItemV2).changed
            assert db.plan(ItemV2) == []
