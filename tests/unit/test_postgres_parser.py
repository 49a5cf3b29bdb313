"""
Tests for PostgresParser: enums, tables, constraints, indexes and comments.
"""
import logging

import pytest

from prismaforge.constants import ConstraintKind, SegmentKind, Severity, StatementKind
from prismaforge.exceptions import StrictModeError
from prismaforge.parsers.postgres import PostgresParser


@pytest.fixture
def parser():
    return PostgresParser()


class TestStatementClassification:

    @pytest.mark.parametrize("statement,kind", [
        ("CREATE TYPE mood AS ENUM ('sad', 'ok')", StatementKind.CREATE_ENUM),
        ("CREATE TABLE users (id INT)", StatementKind.CREATE_TABLE),
        ("CREATE UNLOGGED TABLE IF NOT EXISTS t (id INT)", StatementKind.CREATE_TABLE),
        ("ALTER TABLE posts ADD FOREIGN KEY (user_id) REFERENCES users(id)", StatementKind.ALTER_TABLE_ADD_FK),
        ("CREATE UNIQUE INDEX idx ON users (email)", StatementKind.CREATE_INDEX),
        ("COMMENT ON COLUMN users.email IS 'x'", StatementKind.COMMENT_ON),
        ("INSERT INTO users VALUES (1)", StatementKind.UNRECOGNIZED),
        ("ALTER TABLE users ADD COLUMN age INT", StatementKind.UNRECOGNIZED),
    ])
    def test_classify(self, parser, statement, kind):
        assert parser.classify_statement(statement) == kind

    def test_unrecognized_statements_are_silent(self, parser):
        result = parser.parse("SET search_path = public; INSERT INTO t VALUES (1); GRANT ALL ON t TO bob;")
        assert result.tables == []
        assert result.diagnostics == []

    def test_empty_document_is_valid(self, parser):
        result = parser.parse("")
        assert result.tables == [] and result.enums == [] and result.diagnostics == []


class TestEnumExtraction:

    def test_enum_values_in_order(self, parser):
        result = parser.parse("CREATE TYPE status AS ENUM ('active', 'inactive', 'on-hold');")
        assert len(result.enums) == 1
        assert result.enums[0].name == "status"
        assert result.enums[0].values == ("active", "inactive", "on-hold")

    def test_enum_column_resolves_to_enum(self, parser):
        result = parser.parse("""
            CREATE TYPE mood AS ENUM ('happy', 'sad');
            CREATE TABLE people (id INT, current_mood mood NOT NULL);
        """)
        column = result.get_table("people").get_column("current_mood")
        assert column.is_enum
        assert column.data_type == "mood"

    def test_malformed_enum_recorded(self, parser):
        result = parser.parse("CREATE TYPE mood AS ENUM;")
        assert result.enums == []
        assert len(result.diagnostics) == 1


class TestTableExtraction:

    def test_columns_and_flags(self, parser):
        result = parser.parse("""
            CREATE TABLE users (
                id SERIAL PRIMARY KEY,
                email VARCHAR(255) NOT NULL UNIQUE,
                bio TEXT,
                price NUMERIC(10, 2),
                tags TEXT[]
            );
        """)
        table = result.get_table("users")
        assert [c.name for c in table.columns] == ["id", "email", "bio", "price", "tags"]

        id_col = table.get_column("id")
        assert id_col.data_type == "SERIAL"
        assert id_col.is_primary_key and not id_col.is_nullable

        email = table.get_column("email")
        assert email.data_type == "VARCHAR" and email.length == 255
        assert email.is_unique and not email.is_nullable

        assert table.get_column("bio").is_nullable
        price = table.get_column("price")
        assert (price.length, price.scale) == (10, 2)
        assert table.get_column("tags").is_array

    def test_quoted_and_qualified_names(self, parser):
        result = parser.parse('CREATE TABLE public."UserAccounts" ("UserId" INT, Name TEXT);')
        table = result.get_table("UserAccounts")
        assert table.name == "UserAccounts"
        assert [c.name for c in table.columns] == ["UserId", "name"]

    def test_multi_word_types(self, parser):
        result = parser.parse("""
            CREATE TABLE t (
                a CHARACTER VARYING(20),
                b DOUBLE PRECISION,
                c TIMESTAMP WITH TIME ZONE,
                d TIMESTAMP WITHOUT TIME ZONE
            );
        """)
        table = result.get_table("t")
        assert [c.data_type for c in table.columns] == ["VARCHAR", "DOUBLE", "TIMESTAMPTZ", "TIMESTAMP"]
        assert table.get_column("a").length == 20

    def test_identity_becomes_serial(self, parser):
        result = parser.parse("""
            CREATE TABLE t (
                id INTEGER GENERATED ALWAYS AS IDENTITY PRIMARY KEY,
                seq BIGINT GENERATED BY DEFAULT AS IDENTITY
            );
        """)
        table = result.get_table("t")
        assert table.get_column("id").data_type == "SERIAL"
        assert table.get_column("id").is_identity
        assert table.get_column("seq").data_type == "BIGSERIAL"
        assert table.get_column("seq").default_value is None

    @pytest.mark.parametrize("definition,expected", [
        ("created_at TIMESTAMP DEFAULT now()", "now()"),
        ("created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP NOT NULL", "CURRENT_TIMESTAMP"),
        ("state TEXT DEFAULT 'draft'", "'draft'"),
        ("data JSONB DEFAULT '{}'::jsonb", "'{}'::jsonb"),
        ("id UUID DEFAULT gen_random_uuid() PRIMARY KEY", "gen_random_uuid()"),
        ("total INT DEFAULT (1 + 2)", "(1 + 2)"),
        ("active BOOLEAN NOT NULL DEFAULT true", "true"),
    ])
    def test_default_values(self, parser, definition, expected):
        result = parser.parse(f"CREATE TABLE t ({definition});")
        assert result.tables[0].columns[0].default_value == expected

    def test_keywords_inside_names_and_literals_ignored(self, parser):
        result = parser.parse("""
            CREATE TABLE t (
                unique_code TEXT,
                note TEXT DEFAULT 'unique not null',
                check2 INT
            );
        """)
        table = result.get_table("t")
        assert [c.name for c in table.columns] == ["unique_code", "note", "check2"]
        assert not table.get_column("unique_code").is_unique
        note = table.get_column("note")
        assert not note.is_unique and note.is_nullable

    def test_inline_check_recorded(self, parser):
        result = parser.parse("CREATE TABLE t (price INT CHECK (price > 0));")
        checks = [c for c in result.tables[0].constraints if c.kind == ConstraintKind.CHECK]
        assert len(checks) == 1
        assert checks[0].expression == "price > 0"

    def test_table_level_constraints(self, parser):
        result = parser.parse("""
            CREATE TABLE memberships (
                org_id INT,
                user_id INT,
                role TEXT,
                CONSTRAINT pk_memberships PRIMARY KEY (org_id, user_id),
                UNIQUE (user_id, role),
                CHECK (role <> '')
            );
        """)
        table = result.get_table("memberships")
        kinds = [c.kind for c in table.constraints]
        assert kinds == [ConstraintKind.PRIMARY_KEY, ConstraintKind.UNIQUE, ConstraintKind.CHECK]
        assert table.constraints[0].name == "pk_memberships"
        assert table.primary_key_columns == ["org_id", "user_id"]
        assert table.get_column("org_id").is_primary_key
        assert not table.get_column("org_id").is_nullable
        # composite keys never mark single columns unique
        assert not table.get_column("user_id").is_unique

    def test_single_column_table_constraints_mark_columns(self, parser):
        result = parser.parse("CREATE TABLE t (id INT, code TEXT, PRIMARY KEY (id), UNIQUE (code));")
        table = result.get_table("t")
        assert table.get_column("id").is_primary_key
        assert table.get_column("code").is_unique

    def test_like_clause_ignored(self, parser):
        result = parser.parse("CREATE TABLE t (id INT, LIKE other INCLUDING ALL);")
        assert [c.name for c in result.tables[0].columns] == ["id"]
        assert result.diagnostics == []

    def test_missing_body_is_diagnosed(self, parser):
        result = parser.parse("CREATE TABLE broken;")
        assert result.tables == []
        assert result.diagnostics[0].severity == Severity.ERROR

    def test_duplicate_table_keeps_first(self, parser):
        result = parser.parse("CREATE TABLE t (a INT); CREATE TABLE t (b INT);")
        assert len(result.tables) == 1
        assert result.tables[0].columns[0].name == "a"
        assert "Duplicate table" in result.diagnostics[0].message


class TestSegmentClassification:

    @pytest.mark.parametrize("segment,kind", [
        ("id INT", SegmentKind.COLUMN),
        ('"primary" INT', SegmentKind.COLUMN),
        ("unique_code TEXT", SegmentKind.COLUMN),
        ("check2 INT", SegmentKind.COLUMN),
        ("PRIMARY KEY (id)", SegmentKind.CONSTRAINT),
        ("CONSTRAINT fk FOREIGN KEY (a) REFERENCES b (id)", SegmentKind.CONSTRAINT),
        ("unique (a, b)", SegmentKind.CONSTRAINT),
        ("CHECK (a > 0)", SegmentKind.CONSTRAINT),
        ("LIKE other", SegmentKind.IGNORED),
        ("EXCLUDE USING gist (room WITH =)", SegmentKind.IGNORED),
    ])
    def test_classify_segment(self, parser, segment, kind):
        assert parser.classify_segment(segment) == kind


class TestForeignKeys:

    def test_inline_reference_becomes_constraint(self, parser):
        result = parser.parse("""
            CREATE TABLE users (id SERIAL PRIMARY KEY);
            CREATE TABLE posts (
                id SERIAL PRIMARY KEY,
                author_id INT NOT NULL REFERENCES users(id) ON DELETE CASCADE ON UPDATE NO ACTION
            );
        """)
        fks = result.get_table("posts").foreign_keys
        assert len(fks) == 1
        fk = fks[0]
        assert fk.columns == ["author_id"]
        assert fk.referenced_table == "users"
        assert fk.referenced_columns == ["id"]
        assert fk.on_delete == "CASCADE"
        assert fk.on_update == "NO ACTION"

    def test_reference_without_columns_uses_primary_key(self, parser):
        result = parser.parse("""
            CREATE TABLE users (user_key INT PRIMARY KEY);
            CREATE TABLE posts (owner INT REFERENCES users);
        """)
        assert result.get_table("posts").foreign_keys[0].referenced_columns == ["user_key"]

    def test_table_level_foreign_key(self, parser):
        result = parser.parse("""
            CREATE TABLE orders (
                tenant_id INT,
                customer_id INT,
                CONSTRAINT fk_customer FOREIGN KEY (tenant_id, customer_id)
                    REFERENCES customers (tenant_id, id) ON DELETE SET NULL
            );
        """)
        fk = result.get_table("orders").foreign_keys[0]
        assert fk.name == "fk_customer"
        assert fk.columns == ["tenant_id", "customer_id"]
        assert fk.referenced_columns == ["tenant_id", "id"]
        assert fk.on_delete == "SET NULL"

    def test_alter_table_attaches_to_owning_table(self, parser):
        result = parser.parse("""
            ALTER TABLE posts ADD CONSTRAINT fk_editor FOREIGN KEY (editor_id) REFERENCES users(id);
            CREATE TABLE users (id SERIAL PRIMARY KEY);
            CREATE TABLE posts (id SERIAL PRIMARY KEY, editor_id INT);
        """)
        fks = result.get_table("posts").foreign_keys
        assert [fk.name for fk in fks] == ["fk_editor"]
        assert result.get_table("users").foreign_keys == []

    def test_alter_table_on_unknown_table_dropped_silently(self, parser):
        result = parser.parse("""
            CREATE TABLE users (id SERIAL PRIMARY KEY);
            ALTER TABLE ghosts ADD FOREIGN KEY (user_id) REFERENCES users(id);
        """)
        assert [t.name for t in result.tables] == ["users"]
        assert result.diagnostics == []

    def test_alter_table_with_several_actions(self, parser):
        result = parser.parse("""
            CREATE TABLE posts (id INT, a_id INT, b_id INT);
            ALTER TABLE ONLY posts
                ADD CONSTRAINT fk_a FOREIGN KEY (a_id) REFERENCES a(id),
                ADD CONSTRAINT fk_b FOREIGN KEY (b_id) REFERENCES b(id);
        """)
        assert [fk.name for fk in result.get_table("posts").foreign_keys] == ["fk_a", "fk_b"]

    def test_mismatched_column_lists_diagnosed(self, parser):
        result = parser.parse("CREATE TABLE t (a INT, b INT, FOREIGN KEY (a, b) REFERENCES u (id));")
        assert result.tables[0].foreign_keys == []
        assert len(result.diagnostics) == 1


class TestIndexesAndComments:

    def test_index_attached(self, parser):
        result = parser.parse("""
            CREATE TABLE posts (id INT, title TEXT, slug TEXT);
            CREATE INDEX idx_posts_title ON posts USING gin (title);
            CREATE UNIQUE INDEX ON public.posts (slug DESC);
        """)
        indexes = result.get_table("posts").indexes
        assert len(indexes) == 2
        assert indexes[0].name == "idx_posts_title"
        assert indexes[0].method == "gin"
        assert not indexes[0].is_unique
        assert indexes[1].name is None
        assert indexes[1].columns == ["slug"]
        assert indexes[1].is_unique

    def test_index_on_unknown_table_or_column_skipped(self, parser):
        result = parser.parse("""
            CREATE TABLE posts (id INT);
            CREATE INDEX a ON missing (id);
            CREATE INDEX b ON posts (nope);
            CREATE INDEX c ON posts (lower(id));
        """)
        assert result.get_table("posts").indexes == []
        assert result.diagnostics == []

    def test_comments_attached(self, parser):
        result = parser.parse("""
            CREATE TABLE users (id INT, email TEXT);
            COMMENT ON TABLE users IS 'Registered users';
            COMMENT ON COLUMN public.users.email IS 'Login address, it''s unique';
        """)
        table = result.get_table("users")
        assert table.comment == "Registered users"
        assert table.get_column("email").comment == "Login address, it's unique"

    def test_comment_is_null_clears(self, parser):
        result = parser.parse("""
            CREATE TABLE users (id INT);
            COMMENT ON TABLE users IS 'x';
            COMMENT ON TABLE users IS NULL;
        """)
        assert result.get_table("users").comment is None

    def test_comment_on_unknown_target_ignored(self, parser):
        result = parser.parse("COMMENT ON TABLE nobody IS 'x'; COMMENT ON COLUMN users.nobody IS 'y';")
        assert result.diagnostics == []


class TestStrictMode:

    def test_strict_raises_on_malformed(self):
        with pytest.raises(StrictModeError) as exc_info:
            PostgresParser(strict=True).parse("CREATE TABLE broken;")
        assert exc_info.value.statement == "CREATE TABLE broken"

    def test_strict_ignores_unrecognized(self):
        result = PostgresParser(strict=True).parse("DROP TABLE x; CREATE TABLE t (id INT);")
        assert len(result.tables) == 1

    def test_lenient_logs_warning(self, parser, caplog):
        with caplog.at_level(logging.WARNING, logger="prismaforge"):
            parser.parse("CREATE TYPE mood AS ENUM;")
        assert "Malformed CREATE TYPE" in caplog.text

    def test_warning_carries_statement_context(self, parser, caplog):
        with caplog.at_level(logging.WARNING, logger="prismaforge"):
            parser.parse("CREATE TABLE t (a INT); CREATE TABLE t (b INT);")
        record = caplog.records[0]
        assert record.statement == "CREATE TABLE t (b INT)"
        assert record.table_name == "t"
        assert record.operation == "create_table"
