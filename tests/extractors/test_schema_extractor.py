"""Tests for the schema model extractor."""

from __future__ import annotations

from docsync.extractors.base import ExtractionContext
from docsync.extractors.schema import SchemaExtractor


def _extract(repo_builder):  # type: ignore[no-untyped-def]
    return SchemaExtractor().extract(ExtractionContext(manifest=repo_builder.scan()))


def test_prisma_models(repo_builder) -> None:
    repo_builder.write(
        {
            "prisma/schema.prisma": """
            // database models
            model User {
              id    Int     @id @default(autoincrement())
              email String  @unique
              posts Post[]

              @@map("users")
            }

            model Post {
              id       Int @id
              authorId Int
            }
            """,
        }
    )

    entities = _extract(repo_builder).entities

    assert [entity.identity for entity in entities] == ["User", "Post"]
    assert entities[0].attributes == (
        ("id", "Int @id @default(autoincrement())"),
        ("email", "String @unique"),
        ("posts", "Post[]"),
        ("table", "users"),
    )
    assert entities[1].attributes == (("id", "Int @id"), ("authorId", "Int"))


def test_sql_tables_skip_constraints(repo_builder) -> None:
    repo_builder.write(
        {
            "db/migrations/001_init.sql": """
            -- accounts ledger
            CREATE TABLE IF NOT EXISTS accounts (
              id SERIAL PRIMARY KEY,
              owner_id INTEGER NOT NULL,
              balance NUMERIC(12, 2) DEFAULT 0,
              CONSTRAINT fk_owner FOREIGN KEY (owner_id) REFERENCES users(id)
            );
            """,
        }
    )

    entity = _extract(repo_builder).entities[0]

    assert entity.identity == "accounts"
    assert entity.attributes == (
        ("id", "SERIAL PRIMARY KEY"),
        ("owner_id", "INTEGER NOT NULL"),
        ("balance", "NUMERIC(12, 2) DEFAULT 0"),
        ("table", "accounts"),
    )
    assert entity.location.line == 2


def test_sqlalchemy_models_and_table_assertions(repo_builder) -> None:
    repo_builder.write(
        {
            "app/models.py": """
            from sqlalchemy import String
            from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


            class Base(DeclarativeBase):
                pass


            class User(Base):
                __tablename__ = "users"

                id: Mapped[int] = mapped_column(primary_key=True)
                email: Mapped[str] = mapped_column(String(120), unique=True)
                orders = relationship("Order")


            class Helper:
                value = 1
            """,
            "tests/test_models.py": """
            from app.models import User


            def test_table_name():
                assert User.__tablename__ == "accounts"
            """,
        }
    )

    entities = _extract(repo_builder).entities

    assert [entity.identity for entity in entities] == ["User"]
    user = entities[0]
    assert user.attributes == (
        ("id", "int"),
        ("email", "str"),
        ("orders", "relationship(Order)"),
        ("table", "users"),
    )
    assertion = user.test_assertions[0]
    assert (assertion.check, assertion.attribute, assertion.expected) == ("equals", "table", "accounts")
    assert str(assertion.location) == "tests/test_models.py:5"


def test_typeorm_entities(repo_builder) -> None:
    repo_builder.write(
        {
            "src/entities/Order.entity.ts": """
            @Entity('orders')
            export class Order {
              @PrimaryGeneratedColumn()
              id: number;

              @Column({ type: 'decimal' })
              total: number;
            }
            """,
        }
    )

    entity = _extract(repo_builder).entities[0]

    assert entity.identity == "Order"
    assert entity.attributes == (
        ("id", "number @PrimaryGeneratedColumn"),
        ("total", "number @Column"),
        ("table", "orders"),
    )


def test_unterminated_model_is_an_extraction_error(repo_builder) -> None:
    repo_builder.write({"prisma/schema.prisma": "model Broken {\n  id Int @id\n"})

    result = _extract(repo_builder)

    assert result.entities == []
    assert [error.path for error in result.errors] == ["prisma/schema.prisma"]
