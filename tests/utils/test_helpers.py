"""
Shared builders for metaloc tests.

Provides layout XML templates and a populated :class:`FakeRepository`
describing one solution with an ``account`` table, a localized main form,
a dashboard and a site map in English (1033) and French (1036).
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
import tempfile

import yaml

from metaloc.model.nodes import RelationshipKind
from metaloc.repository.base import (
    CHARTS_SET,
    COMPONENT_ENTITY,
    COMPONENT_SITEMAP,
    COMPONENT_SYSTEM_FORM,
    FORMS_SET,
    SITEMAPS_SET,
    VIEWS_SET,
)

from .fake_repository import FakeRepository, label_payload

__all__ = [
    "ACCOUNT_ID",
    "DASHBOARD_ID",
    "FIELD_CELL_ID",
    "MAIN_FORM_ID",
    "SECTION_ID",
    "SITEMAP_ID",
    "SITEMAP_XML",
    "SOLUTION_ID",
    "TAB_ID",
    "VIEW_ID",
    "build_sample_repository",
    "create_temp_config_file",
    "form_xml",
]

SOLUTION_ID = "5e1a0000-0000-0000-0000-000000000001"
ACCOUNT_ID = "70816501-edb9-4740-a16c-6a5efbc05d84"
MAIN_FORM_ID = "8448b78f-8f42-454e-8e2a-f8196b0419af"
MAIN_FORM_UNIQUE_ID = "1aa2c1ae-2b3c-4b2e-8f3c-000000000001"
DASHBOARD_ID = "d0d0d0d0-0000-0000-0000-000000000001"
SITEMAP_ID = "51735173-0000-0000-0000-000000000001"
VIEW_ID = "00000000-0000-0000-00aa-000010001001"
CHART_ID = "c4a7c4a7-0000-0000-0000-000000000001"

TAB_ID = "{a1b2c3d4-0000-0000-0000-000000000001}"
SECTION_ID = "{b1000000-0000-0000-0000-000000000001}"
FIELD_CELL_ID = "{c1000000-0000-0000-0000-000000000001}"

SITEMAP_XML = (
    "<SiteMap>"
    '<Area Id="sales_area">'
    '<Titles><Title LCID="1033" Title="Sales" /><Title LCID="1036" Title="Ventes" /></Titles>'
    '<Group Id="customers">'
    '<Titles><Title LCID="1033" Title="Customers" /></Titles>'
    '<SubArea Id="nav_accounts" Entity="account">'
    '<Titles><Title LCID="1033" Title="Accounts" /></Titles>'
    '<Descriptions><Description LCID="1033" Description="All accounts" /></Descriptions>'
    "</SubArea>"
    "</Group>"
    "</Area>"
    "</SiteMap>"
)


def form_xml(tab: str, section: str, field: str, language: int = 1033) -> str:
    """A one-tab, one-section form whose captions are rendered in ``language``."""
    return (
        "<form><tabs>"
        f'<tab name="general" id="{TAB_ID}">'
        f'<labels><label description="{tab}" languagecode="{language}" /></labels>'
        '<columns><column width="100%"><sections>'
        f'<section name="summary" id="{SECTION_ID}">'
        f'<labels><label description="{section}" languagecode="{language}" /></labels>'
        "<rows>"
        f'<row><cell id="{FIELD_CELL_ID}">'
        f'<labels><label description="{field}" languagecode="{language}" /></labels>'
        '<control id="name" datafieldname="name" />'
        "</cell></row>"
        '<row><cell id="{c1000000-0000-0000-0000-000000000002}">'
        f'<labels><label description="" languagecode="{language}" /></labels>'
        "</cell></row>"
        "</rows>"
        "</section>"
        "</sections></column></columns>"
        "</tab>"
        "</tabs></form>"
    )


def _form_record(xml: str) -> dict[str, object]:
    return {
        "formid": MAIN_FORM_ID,
        "name": "Account",
        "formxml": xml,
        "type": 2,
        "formidunique": MAIN_FORM_UNIQUE_ID,
    }


def _dashboard_record(xml: str) -> dict[str, object]:
    return {
        "formid": DASHBOARD_ID,
        "name": "Sales Dashboard",
        "formxml": xml,
        "type": 0,
        "formidunique": "da5bda5b-0000-0000-0000-000000000001",
    }


def build_sample_repository() -> FakeRepository:
    """A repository with one fully populated solution in English and French."""
    repository = FakeRepository(base_language=1033, languages=[1033, 1036])
    repository.solutions = [
        {"solutionid": SOLUTION_ID, "friendlyname": "Contoso", "uniquename": "contoso"},
    ]
    repository.components = {
        (SOLUTION_ID, COMPONENT_ENTITY): [ACCOUNT_ID],
        (SOLUTION_ID, COMPONENT_SYSTEM_FORM): [DASHBOARD_ID],
        (SOLUTION_ID, COMPONENT_SITEMAP): [SITEMAP_ID],
    }
    repository.entities["account"] = {
        "MetadataId": ACCOUNT_ID,
        "LogicalName": "account",
        "EntitySetName": "accounts",
        "ObjectTypeCode": 1,
        "DisplayName": label_payload({1033: "Account", 1036: "Compte"}),
        "DisplayCollectionName": label_payload({1033: "Accounts", 1036: "Comptes"}),
        "Description": label_payload({1033: "Business that represents a customer"}),
    }
    repository.attributes["account"] = [
        {
            "MetadataId": "a77e0000-0000-0000-0000-000000000001",
            "LogicalName": "name",
            "DisplayName": label_payload({1033: "Account Name", 1036: "Nom du compte"}),
            "Description": label_payload({}),
        },
    ]
    repository.relationships[("account", RelationshipKind.ONE_TO_MANY)] = [
        {
            "MetadataId": "4e1a0000-0000-0000-0000-000000000001",
            "SchemaName": "account_contacts",
            "ReferencingEntity": "contact",
            "AssociatedMenuConfiguration": {
                "Behavior": "UseLabel",
                "Label": label_payload({1033: "Contacts", 1036: "Contacts"}),
            },
        },
        {
            "MetadataId": "4e1a0000-0000-0000-0000-000000000002",
            "SchemaName": "account_tasks",
            "ReferencingEntity": "task",
            "AssociatedMenuConfiguration": {"Behavior": "UseCollectionName", "Label": label_payload({})},
        },
    ]
    repository.picklists["account"] = [
        {
            "MetadataId": "a77e0000-0000-0000-0000-000000000002",
            "LogicalName": "industrycode",
            "AttributeType": "Picklist",
            "OptionSet": {
                "Name": "account_industrycode",
                "MetadataId": "0b7e0000-0000-0000-0000-000000000001",
                "IsGlobal": False,
                "Options": [
                    {
                        "Value": 1,
                        "Label": label_payload({1033: "Accounting", 1036: "Comptabilité"}),
                        "Description": label_payload({}),
                    },
                ],
            },
        },
    ]
    repository.booleans["account"] = [
        {
            "MetadataId": "a77e0000-0000-0000-0000-000000000003",
            "LogicalName": "donotemail",
            "AttributeType": "Boolean",
            "OptionSet": {
                "Name": "account_donotemail",
                "IsGlobal": False,
                "TrueOption": {"Value": 1, "Label": label_payload({1033: "Do Not Allow"})},
                "FalseOption": {"Value": 0, "Label": label_payload({1033: "Allow"})},
            },
        },
    ]
    repository.views[1] = [{"savedqueryid": VIEW_ID, "name": "Active Accounts", "querytype": 0}]
    repository.loc_labels[(VIEWS_SET, VIEW_ID, "name")] = {1033: "Active Accounts", 1036: "Comptes actifs"}
    repository.charts[1] = [{"savedqueryvisualizationid": CHART_ID, "name": "Accounts by Industry"}]
    repository.loc_labels[(CHARTS_SET, CHART_ID, "name")] = {1033: "Accounts by Industry"}

    english_form = form_xml("General", "Summary", "Account Name", 1033)
    french_form = form_xml("Général", "Résumé", "Nom du compte", 1036)
    repository.forms[1] = {1033: [_form_record(english_form)], 1036: [_form_record(french_form)]}
    repository.records[(FORMS_SET, MAIN_FORM_ID)] = _form_record(english_form)
    repository.loc_labels[(FORMS_SET, MAIN_FORM_ID, "name")] = {1033: "Account", 1036: "Compte"}

    repository.records[(FORMS_SET, DASHBOARD_ID)] = _dashboard_record(
        form_xml("Overview", "Pipeline", "Account Name", 1033)
    )
    repository.localized_records[(FORMS_SET, DASHBOARD_ID, 1036)] = _dashboard_record(
        form_xml("Aperçu", "Pipeline", "Nom du compte", 1036)
    )

    repository.records[(SITEMAPS_SET, SITEMAP_ID)] = {
        "sitemapid": SITEMAP_ID,
        "sitemapname": "Contoso App",
        "sitemapnameunique": "contoso_app",
        "sitemapxml": SITEMAP_XML,
    }
    return repository


@contextmanager
def create_temp_config_file(config_data: dict[str, object]) -> Generator[Path, None, None]:
    """Write ``config_data`` to a temporary YAML file and remove it afterwards."""
    with tempfile.TemporaryDirectory() as temp_dir:
        config_path = Path(temp_dir) / "config.yml"
        with config_path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(config_data, f)
        yield config_path
