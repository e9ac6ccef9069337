"""Tests for the metadata tree builder."""

from __future__ import annotations

import pytest

from metaloc.config.schema import ExportOptionsConfig
from metaloc.export.tree_builder import MetadataTreeBuilder, option_entries_from, table_from_payload
from metaloc.model.labels import DESCRIPTION, DISPLAY_NAME, LABEL
from metaloc.model.nodes import RelationshipKind
from metaloc.utils.core.error_tracker import ErrorTracker
from metaloc.utils.core.exceptions import ErrorCategory, FetchError
from tests.utils import FakeRepository, label_payload
from tests.utils.test_helpers import MAIN_FORM_ID, SOLUTION_ID


@pytest.fixture
def builder(sample_repository: FakeRepository, errors: ErrorTracker) -> MetadataTreeBuilder:
    return MetadataTreeBuilder(sample_repository, ExportOptionsConfig(), errors)


class TestPayloadParsing:
    """Test node construction from repository payloads."""

    def test_table_from_payload(self, sample_repository: FakeRepository) -> None:
        table = table_from_payload(sample_repository.entities["account"])

        assert table.logical_name == "account"
        assert table.object_type_code == 1
        assert table.display_label == "Account"
        assert table.labels.text(DISPLAY_NAME, 1036) == "Compte"
        assert table.labels.qualifiers() == ["DisplayName", "DisplayCollectionName", "Description"]

    def test_boolean_options(self, sample_repository: FakeRepository) -> None:
        entries = option_entries_from(sample_repository.booleans["account"][0], boolean=True)

        assert [entry.value for entry in entries] == [1, 0]
        assert all(entry.is_boolean for entry in entries)
        assert entries[0].labels.text(LABEL, 1033) == "Do Not Allow"

    def test_option_without_option_set(self) -> None:
        assert option_entries_from({"LogicalName": "x", "AttributeType": "Picklist"}) == []


class TestMetadataTreeBuilder:
    """Test tree assembly against the in-memory repository."""

    @pytest.mark.asyncio
    async def test_resolve_solution(self, builder: MetadataTreeBuilder) -> None:
        solution = await builder.resolve_solution("CONTOSO")

        assert solution.solution_id == SOLUTION_ID
        assert solution.name == "Contoso"

    @pytest.mark.asyncio
    async def test_unknown_solution_raises(self, builder: MetadataTreeBuilder) -> None:
        with pytest.raises(FetchError, match="Solution not found"):
            _ = await builder.resolve_solution("missing")

    @pytest.mark.asyncio
    async def test_build_tables_from_solution(self, builder: MetadataTreeBuilder) -> None:
        solution = await builder.resolve_solution("contoso")
        tables = await builder.build_tables(solution, [])

        assert [table.logical_name for table in tables] == ["account"]

    @pytest.mark.asyncio
    async def test_build_tables_sorted_and_failures_recorded(
        self, sample_repository: FakeRepository, builder: MetadataTreeBuilder, errors: ErrorTracker
    ) -> None:
        sample_repository.entities["contact"] = {
            "MetadataId": "c0",
            "LogicalName": "contact",
            "DisplayName": label_payload({1033: "Aardvark"}),
        }

        tables = await builder.build_tables(None, ["account", "missing", "contact"])

        assert [table.logical_name for table in tables] == ["contact", "account"]
        assert errors.count(ErrorCategory.FETCH) == 1

    @pytest.mark.asyncio
    async def test_populate_fills_children(self, builder: MetadataTreeBuilder) -> None:
        tables = await builder.build_tables(None, ["account"])
        await builder.populate(tables)
        table = tables[0]

        assert [f.logical_name for f in table.fields] == ["name"]
        assert [r.schema_name for r in table.relationships] == ["account_contacts"]
        assert table.relationships[0].labels.text(DISPLAY_NAME, 1036) == "Contacts"
        assert [(e.attribute_logical_name, e.value) for e in table.option_entries] == [
            ("industrycode", 1),
            ("donotemail", 1),
            ("donotemail", 0),
        ]
        assert table.views[0].view_type == "Public View"
        assert table.views[0].labels.text(LABEL, 1036) == "Comptes actifs"
        assert DESCRIPTION in table.views[0].labels
        assert table.charts[0].labels.text(LABEL, 1033) == "Accounts by Industry"

    @pytest.mark.asyncio
    async def test_failing_part_is_omitted(
        self, sample_repository: FakeRepository, builder: MetadataTreeBuilder, errors: ErrorTracker
    ) -> None:
        sample_repository.fail_on.add("get_views")
        tables = await builder.build_tables(None, ["account"])
        await builder.populate(tables)

        assert tables[0].views == []
        assert tables[0].charts
        assert errors.count(ErrorCategory.FETCH) == 1
        assert errors.records[0].phase == "account views"

    @pytest.mark.asyncio
    async def test_many_to_many_uses_table_side(
        self, sample_repository: FakeRepository, builder: MetadataTreeBuilder
    ) -> None:
        sample_repository.relationships[("account", RelationshipKind.MANY_TO_MANY)] = [
            {
                "MetadataId": "nn1",
                "SchemaName": "account_leads",
                "IntersectEntityName": "accountleads",
                "Entity1LogicalName": "lead",
                "Entity2LogicalName": "account",
                "Entity1AssociatedMenuConfiguration": {
                    "Behavior": "UseLabel",
                    "Label": label_payload({1033: "Accounts"}),
                },
                "Entity2AssociatedMenuConfiguration": {
                    "Behavior": "UseLabel",
                    "Label": label_payload({1033: "Leads"}),
                },
            }
        ]
        tables = await builder.build_tables(None, ["account"])
        await builder.load_relationships(tables[0])

        many_to_many = [r for r in tables[0].relationships if r.kind is RelationshipKind.MANY_TO_MANY]
        assert len(many_to_many) == 1
        assert many_to_many[0].intersect_entity == "accountleads"
        assert many_to_many[0].labels.text(DISPLAY_NAME, 1033) == "Leads"

    @pytest.mark.asyncio
    async def test_forms_snapshot_in_active_language(
        self, sample_repository: FakeRepository, builder: MetadataTreeBuilder
    ) -> None:
        tables = await builder.build_tables(None, ["account"])
        await builder.snapshot_forms(tables, 1033, is_base=True)
        sample_repository.active_language = 1036
        await builder.snapshot_forms(tables, 1036, is_base=False)

        forms = tables[0].forms
        assert [(form.id, form.language, form.is_base) for form in forms] == [
            (MAIN_FORM_ID, 1033, True),
            (MAIN_FORM_ID, 1036, False),
        ]
        assert "Général" in forms[1].layout_xml
        assert forms[0].labels.text(LABEL, 1036) == "Compte"
        assert forms[0].form_type == "Main"
        assert len(forms[1].labels) == 0

    @pytest.mark.asyncio
    async def test_dashboards_and_sitemaps(self, builder: MetadataTreeBuilder) -> None:
        solution = await builder.resolve_solution("contoso")

        dashboards = await builder.load_dashboards(solution, 1033, is_base=True)
        sitemaps = await builder.load_sitemaps(solution)

        assert [d.name for d in dashboards] == ["Sales Dashboard"]
        assert [s.unique_name for s in sitemaps] == ["contoso_app"]
