"""Tests for the Dataverse Web API client."""

from __future__ import annotations

import json
from collections.abc import Callable
from unittest.mock import patch

import httpx
import pytest

from metaloc.model.nodes import RelationshipKind
from metaloc.repository.dataverse import DataverseClient, build_label, merge_label
from metaloc.utils.core.exceptions import (
    ConnectionUnavailableError,
    FetchError,
    ReferenceNotFoundError,
    UpdateError,
)

BASE_URL = "https://contoso.crm.dynamics.com"
API_PATH = "/api/data/v9.2/"

Handler = Callable[[httpx.Request], httpx.Response]


class Recorder:
    """Routes requests by method and path, keeping every request seen."""

    def __init__(self, routes: dict[tuple[str, str], httpx.Response | Handler] | None = None) -> None:
        self.routes: dict[tuple[str, str], httpx.Response | Handler] = routes or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix(API_PATH)
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"error": {"message": f"No route for {path}"}})
        if isinstance(route, httpx.Response):
            return route
        return route(request)

    def body(self, index: int = -1) -> dict[str, object]:
        return json.loads(self.requests[index].content)


def _client(recorder: Recorder, max_retries: int = 3) -> DataverseClient:
    return DataverseClient(
        BASE_URL + "/",
        "secret",
        max_retries=max_retries,
        transport=httpx.MockTransport(recorder),
    )


class TestLabelPayloads:
    """Test label payload helpers."""

    def test_build_label(self) -> None:
        label = build_label({1033: "Account"})

        assert label["@odata.type"] == "Microsoft.Dynamics.CRM.Label"
        assert label["LocalizedLabels"] == [
            {"@odata.type": "Microsoft.Dynamics.CRM.LocalizedLabel", "Label": "Account", "LanguageCode": 1033},
        ]

    def test_merge_label_keeps_untouched_languages(self) -> None:
        existing = {"LocalizedLabels": [{"Label": "Account", "LanguageCode": 1033}, {"Label": "Kunde", "LanguageCode": 1031}]}

        merged = merge_label(existing, {1036: "Compte", 1031: "Konto"})

        localized = merged["LocalizedLabels"]
        assert isinstance(localized, list)
        assert {(item["LanguageCode"], item["Label"]) for item in localized} == {  # pyright: ignore[reportUnknownVariableType]
            (1033, "Account"),
            (1031, "Konto"),
            (1036, "Compte"),
        }


class TestDataverseClient:
    """Test requests issued by the client."""

    def test_init_strips_trailing_slash(self) -> None:
        client = DataverseClient(BASE_URL + "/", "secret")

        assert client.base_url == BASE_URL
        assert client.api_url == BASE_URL + API_PATH

    @pytest.mark.asyncio
    async def test_request_not_initialized(self) -> None:
        with pytest.raises(RuntimeError, match="DataverseClient not initialized"):
            _ = await DataverseClient(BASE_URL, "secret").get_base_language()

    @pytest.mark.asyncio
    async def test_headers_and_base_language(self) -> None:
        recorder = Recorder({("GET", "organizations"): httpx.Response(200, json={"value": [{"languagecode": 1033}]})})

        async with _client(recorder) as client:
            assert await client.get_base_language() == 1033

        request = recorder.requests[0]
        assert request.headers["Authorization"] == "Bearer secret"
        assert request.headers["OData-Version"] == "4.0"
        assert request.url.params["$select"] == "languagecode"

    @pytest.mark.asyncio
    async def test_base_language_missing(self) -> None:
        recorder = Recorder({("GET", "organizations"): httpx.Response(200, json={"value": []})})

        async with _client(recorder) as client:
            with pytest.raises(FetchError):
                _ = await client.get_base_language()

    @pytest.mark.asyncio
    async def test_ensure_connected_failure(self) -> None:
        recorder = Recorder({("GET", "WhoAmI"): httpx.Response(401, json={"error": {"message": "Unauthorized"}})})

        async with _client(recorder) as client:
            with pytest.raises(ConnectionUnavailableError) as exc_info:
                await client.ensure_connected()

        assert "401 Unauthorized" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_user_settings_and_language_switch(self) -> None:
        recorder = Recorder(
            {
                ("GET", "WhoAmI"): httpx.Response(200, json={"UserId": "u1"}),
                ("GET", "usersettingscollection"): httpx.Response(
                    200, json={"value": [{"uilanguageid": 1033, "localeid": 1033}]}
                ),
                ("PATCH", "usersettingscollection(u1)"): httpx.Response(204),
            }
        )

        async with _client(recorder) as client:
            settings = await client.get_user_settings()
            await client.set_user_language(settings.user_id, 1036)

        assert settings.ui_language == 1033
        assert recorder.requests[1].url.params["$filter"] == "systemuserid eq u1"
        assert recorder.body() == {"uilanguageid": 1036, "localeid": 1036}

    @pytest.mark.asyncio
    async def test_missing_record(self) -> None:
        async with _client(Recorder()) as client:
            with pytest.raises(ReferenceNotFoundError):
                _ = await client.retrieve_record("systemforms", "f1", ("formxml",))

    @pytest.mark.asyncio
    async def test_rejected_write(self) -> None:
        recorder = Recorder({("PATCH", "systemforms(f1)"): httpx.Response(400, json={"error": {"message": "Bad"}})})

        async with _client(recorder) as client:
            with pytest.raises(UpdateError, match="400 Bad"):
                await client.update_record("systemforms", "f1", {"formxml": "<form />"})

    @pytest.mark.asyncio
    async def test_update_entity_labels_merges(self) -> None:
        path = "EntityDefinitions(LogicalName='account')"
        recorder = Recorder(
            {
                ("GET", path): httpx.Response(
                    200,
                    json={
                        "MetadataId": "e1",
                        "DisplayName": {"LocalizedLabels": [{"Label": "Account", "LanguageCode": 1033}]},
                    },
                ),
                ("PUT", path): httpx.Response(204),
            }
        )

        async with _client(recorder) as client:
            await client.update_entity_labels("account", {"DisplayName": {1036: "Compte"}, "Description": {}})

        put = recorder.requests[-1]
        assert put.headers["MSCRM.MergeLabels"] == "true"
        body = recorder.body()
        assert "Description" not in body
        display_name = body["DisplayName"]
        assert isinstance(display_name, dict)
        assert [item["LanguageCode"] for item in display_name["LocalizedLabels"]] == [1033, 1036]  # pyright: ignore[reportUnknownVariableType]

    @pytest.mark.asyncio
    async def test_many_to_many_label_uses_matching_side(self) -> None:
        cast_path = "RelationshipDefinitions(r1)/Microsoft.Dynamics.CRM.ManyToManyRelationshipMetadata"
        recorder = Recorder(
            {
                ("GET", cast_path): httpx.Response(
                    200,
                    json={
                        "Entity1LogicalName": "account",
                        "Entity2LogicalName": "contact",
                        "Entity1AssociatedMenuConfiguration": {"Behavior": "UseLabel"},
                        "Entity2AssociatedMenuConfiguration": {"Behavior": "UseLabel"},
                    },
                ),
                ("PUT", "RelationshipDefinitions(r1)"): httpx.Response(204),
            }
        )

        async with _client(recorder) as client:
            await client.update_relationship_label("r1", RelationshipKind.MANY_TO_MANY, "contact", {1036: "Comptes"})

        body = recorder.body()
        assert body["Entity1AssociatedMenuConfiguration"] == {"Behavior": "UseLabel"}
        menu = body["Entity2AssociatedMenuConfiguration"]
        assert isinstance(menu, dict)
        assert menu["Behavior"] == "UseLabel"
        assert menu["Label"]["LocalizedLabels"][0]["Label"] == "Comptes"  # pyright: ignore[reportIndexIssue, reportUnknownMemberType]

    @pytest.mark.asyncio
    async def test_update_option_value(self) -> None:
        recorder = Recorder({("POST", "UpdateOptionValue"): httpx.Response(204)})

        async with _client(recorder) as client:
            await client.update_option_value("account", "industrycode", None, 1, {1036: "Comptabilité"}, False)
            await client.update_option_value(None, None, "new_size", 2, {1036: "Grand"}, True)

        local = recorder.body(0)
        assert local["EntityLogicalName"] == "account"
        assert local["AttributeLogicalName"] == "industrycode"
        assert local["MergeLabels"] is True
        assert "Label" in local
        global_option = recorder.body(1)
        assert global_option["OptionSetName"] == "new_size"
        assert "EntityLogicalName" not in global_option
        assert "Description" in global_option

    @pytest.mark.asyncio
    async def test_set_loc_labels_moniker(self) -> None:
        recorder = Recorder({("POST", "SetLocLabels"): httpx.Response(204)})

        async with _client(recorder) as client:
            await client.set_loc_labels("savedqueries", "v1", "name", {1036: "Comptes actifs"})

        body = recorder.body()
        assert body["EntityMoniker"] == {"@odata.type": "Microsoft.Dynamics.CRM.savedquery", "savedqueryid": "v1"}
        assert body["Labels"] == [{"Label": "Comptes actifs", "LanguageCode": 1036}]

    @pytest.mark.asyncio
    async def test_timeout_retry(self) -> None:
        attempts: list[int] = []

        def flaky(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            if len(attempts) < 3:
                raise httpx.ReadTimeout("Timeout", request=request)
            return httpx.Response(200, json={"LocaleIds": [1033, 1036]})

        recorder = Recorder({("GET", "RetrieveAvailableLanguages"): flaky})

        with patch("asyncio.sleep") as mock_sleep:
            async with _client(recorder) as client:
                languages = await client.get_languages()

            assert mock_sleep.call_count == 2
            mock_sleep.assert_any_call(1.0)
            mock_sleep.assert_any_call(2.0)

        assert languages == [1033, 1036]

    @pytest.mark.asyncio
    async def test_max_retries_exceeded(self) -> None:
        def timeout(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("Timeout", request=request)

        recorder = Recorder({("GET", "RetrieveAvailableLanguages"): timeout})

        with patch("asyncio.sleep"):
            async with _client(recorder, max_retries=2) as client:
                with pytest.raises(httpx.TimeoutException):
                    _ = await client.get_languages()

        assert len(recorder.requests) == 3

    @pytest.mark.asyncio
    async def test_publish_all(self) -> None:
        recorder = Recorder({("POST", "PublishAllXml"): httpx.Response(204)})

        async with _client(recorder) as client:
            await client.publish_all()

        assert len(recorder.requests) == 1
