"""
Dataverse Web API client.

This module provides the async HTTP client used to read localized metadata
from, and write label edits back to, a Dataverse environment. Requests are
retried with exponential backoff on timeouts; HTTP failures are translated
into the metaloc error taxonomy.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, TypeAlias, cast

import httpx

from ..model.labels import DESCRIPTION, parse_localized_labels
from ..model.nodes import RelationshipKind, UserSettings
from ..utils.core.exceptions import (
    ConnectionUnavailableError,
    FetchError,
    ReferenceNotFoundError,
    UpdateError,
)
from .base import ENTITY_SET_LOGICAL_NAMES, LabelMap, Payload

if TYPE_CHECKING:
    from types import TracebackType

JSONDict: TypeAlias = dict[str, object]

logger = logging.getLogger(__name__)

_RELATIONSHIP_PATHS: dict[RelationshipKind, str] = {
    RelationshipKind.ONE_TO_MANY: "OneToManyRelationships",
    RelationshipKind.MANY_TO_ONE: "ManyToOneRelationships",
    RelationshipKind.MANY_TO_MANY: "ManyToManyRelationships",
}

_RELATIONSHIP_SELECT: dict[RelationshipKind, str] = {
    RelationshipKind.ONE_TO_MANY: "MetadataId,SchemaName,ReferencingEntity,ReferencedEntity,AssociatedMenuConfiguration",
    RelationshipKind.MANY_TO_ONE: "MetadataId,SchemaName,ReferencingEntity,ReferencedEntity,AssociatedMenuConfiguration",
    RelationshipKind.MANY_TO_MANY: (
        "MetadataId,SchemaName,IntersectEntityName,Entity1LogicalName,Entity2LogicalName,"
        + "Entity1AssociatedMenuConfiguration,Entity2AssociatedMenuConfiguration"
    ),
}

_RELATIONSHIP_CASTS: dict[RelationshipKind, str] = {
    RelationshipKind.ONE_TO_MANY: "Microsoft.Dynamics.CRM.OneToManyRelationshipMetadata",
    RelationshipKind.MANY_TO_ONE: "Microsoft.Dynamics.CRM.OneToManyRelationshipMetadata",
    RelationshipKind.MANY_TO_MANY: "Microsoft.Dynamics.CRM.ManyToManyRelationshipMetadata",
}


def build_label(labels: LabelMap) -> JSONDict:
    """Build a ``Label`` payload from a ``{language code: text}`` dictionary."""
    return {
        "@odata.type": "Microsoft.Dynamics.CRM.Label",
        "LocalizedLabels": [
            {
                "@odata.type": "Microsoft.Dynamics.CRM.LocalizedLabel",
                "Label": text,
                "LanguageCode": int(code),
            }
            for code, text in labels.items()
        ],
    }


def merge_label(existing: object, labels: LabelMap) -> JSONDict:
    """Overlay new translations onto an existing ``Label`` payload."""
    merged: dict[int, str] = {}
    if isinstance(existing, Mapping):
        for translation in parse_localized_labels(cast(Mapping[str, object], existing)):
            merged[translation.language_code] = translation.text
    merged.update({int(code): text for code, text in labels.items()})
    return build_label(merged)


class DataverseClient:
    """Async Dataverse Web API client."""

    def __init__(
        self,
        base_url: str,
        token: str,
        api_version: str = "9.2",
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client with connection parameters."""
        self.base_url: str = base_url.rstrip("/")
        self.token: str = token
        self.api_version: str = api_version
        self.timeout: float = timeout
        self.max_retries: int = max_retries
        self._transport: httpx.AsyncBaseTransport | None = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/api/data/v{self.api_version}/"

    async def __aenter__(self) -> DataverseClient:
        """Enter async context and initialize HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.token}",
                "Accept": "application/json",
                "OData-MaxVersion": "4.0",
                "OData-Version": "4.0",
            },
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit async context and cleanup HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        params: Mapping[str, str] | None = None,
        json: object | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> JSONDict:
        """Make an HTTP request to the Web API with retry logic."""
        if self._client is None:
            raise RuntimeError("DataverseClient not initialized. Use as async context manager.")

        for attempt in range(self.max_retries + 1):
            try:
                response = await self._client.request(
                    method,
                    path,
                    params=params,
                    json=json,
                    headers=headers,
                )
                _ = response.raise_for_status()
                if not response.content:
                    return {}
                body = response.json()  # pyright: ignore[reportAny] # external API response
                if not isinstance(body, dict):
                    raise FetchError(f"Unexpected response format from {path}")
                return cast(JSONDict, body)

            except httpx.TimeoutException:
                if attempt < self.max_retries:
                    wait_time = 2.0**attempt
                    logger.warning(
                        "Request timeout (attempt %d/%d), retrying in %.1fs...",
                        attempt + 1,
                        self.max_retries + 1,
                        wait_time,
                    )
                    await asyncio.sleep(wait_time)
                else:
                    raise
            except httpx.HTTPStatusError as e:
                raise self._translate_status_error(method, path, e) from e

        # This should never be reached due to the exception handling above
        raise RuntimeError("Maximum retries exceeded")

    @staticmethod
    def _translate_status_error(method: str, path: str, error: httpx.HTTPStatusError) -> Exception:
        status = error.response.status_code
        detail = str(status)
        try:
            body = error.response.json()  # pyright: ignore[reportAny]
            if isinstance(body, dict):
                inner = cast(JSONDict, body).get("error")
                if isinstance(inner, dict):
                    detail = f"{status} {cast(JSONDict, inner).get('message', '')}".strip()
        except ValueError:
            pass

        message = f"{method} {path} failed: {detail}"
        if status == 404:
            return ReferenceNotFoundError(message, reference=path)
        if method == "GET":
            return FetchError(message)
        return UpdateError(message)

    async def _get(self, path: str, params: Mapping[str, str] | None = None) -> JSONDict:
        return await self._request("GET", path, params=params)

    async def _get_values(self, path: str, params: Mapping[str, str] | None = None) -> list[Payload]:
        body = await self._get(path, params=params)
        values = body.get("value") or []
        if not isinstance(values, list):
            return []
        return [cast(Payload, item) for item in values if isinstance(item, dict)]  # pyright: ignore[reportUnknownVariableType]

    # Connection and locale

    async def ensure_connected(self) -> None:
        try:
            _ = await self._get("WhoAmI")
        except (httpx.HTTPError, FetchError, ReferenceNotFoundError) as e:
            raise ConnectionUnavailableError(
                f"Cannot reach Dataverse at {self.base_url}: {e}",
                user_message="The repository is unavailable. Check the URL and token.",
            ) from e

    async def get_languages(self) -> list[int]:
        body = await self._get("RetrieveAvailableLanguages")
        codes = body.get("LocaleIds") or []
        return [int(code) for code in cast(list[int], codes)]

    async def get_base_language(self) -> int:
        organizations = await self._get_values("organizations", params={"$select": "languagecode"})
        if not organizations or organizations[0].get("languagecode") is None:
            raise FetchError("Base language code not found")
        return int(cast(int, organizations[0]["languagecode"]))

    async def get_user_settings(self) -> UserSettings:
        who = await self._get("WhoAmI")
        user_id = str(who.get("UserId", ""))
        settings = await self._get_values(
            "usersettingscollection",
            params={"$select": "localeid,uilanguageid", "$filter": f"systemuserid eq {user_id}"},
        )
        if not settings:
            raise FetchError(f"No user settings found for user {user_id}")
        return UserSettings(
            user_id=user_id,
            ui_language=int(cast(int, settings[0].get("uilanguageid"))),
            locale=int(cast(int, settings[0].get("localeid"))),
        )

    async def set_user_language(self, user_id: str, language_code: int) -> None:
        _ = await self._request(
            "PATCH",
            f"usersettingscollection({user_id})",
            json={"uilanguageid": language_code, "localeid": language_code},
        )

    # Solutions and entity metadata

    async def get_solutions(self) -> list[Payload]:
        return await self._get_values(
            "solutions",
            params={
                "$filter": "isvisible eq true",
                "$select": "solutionid,friendlyname,uniquename",
                "$orderby": "createdon desc",
            },
        )

    async def get_solution_component_ids(self, solution_id: str, component_type: int) -> list[str]:
        components = await self._get_values(
            "solutioncomponents",
            params={
                "$select": "objectid",
                "$filter": f"_solutionid_value eq {solution_id} and componenttype eq {component_type}",
            },
        )
        return [str(component["objectid"]) for component in components if component.get("objectid")]

    async def get_entity(self, logical_name: str) -> Payload:
        return await self._get(
            f"EntityDefinitions(LogicalName='{logical_name}')",
            params={
                "$select": "MetadataId,LogicalName,EntitySetName,ObjectTypeCode,SchemaName,"
                + "DisplayName,DisplayCollectionName,Description",
            },
        )

    async def get_entity_by_id(self, metadata_id: str) -> Payload:
        return await self._get(
            f"EntityDefinitions({metadata_id})",
            params={
                "$select": "MetadataId,LogicalName,EntitySetName,ObjectTypeCode,SchemaName,"
                + "DisplayName,DisplayCollectionName,Description",
            },
        )

    async def get_attributes(self, logical_name: str) -> list[Payload]:
        return await self._get_values(
            f"EntityDefinitions(LogicalName='{logical_name}')/Attributes",
            params={"$select": "MetadataId,LogicalName,DisplayName,Description"},
        )

    async def get_relationships(self, logical_name: str, kind: RelationshipKind) -> list[Payload]:
        return await self._get_values(
            f"EntityDefinitions(LogicalName='{logical_name}')/{_RELATIONSHIP_PATHS[kind]}",
            params={"$select": _RELATIONSHIP_SELECT[kind]},
        )

    async def get_picklist_attributes(self, logical_name: str) -> list[Payload]:
        return await self._get_values(
            f"EntityDefinitions(LogicalName='{logical_name}')/Attributes/Microsoft.Dynamics.CRM.PicklistAttributeMetadata",
            params={"$select": "MetadataId,LogicalName,AttributeType", "$expand": "OptionSet,GlobalOptionSet"},
        )

    async def get_boolean_attributes(self, logical_name: str) -> list[Payload]:
        return await self._get_values(
            f"EntityDefinitions(LogicalName='{logical_name}')/Attributes/Microsoft.Dynamics.CRM.BooleanAttributeMetadata",
            params={"$select": "MetadataId,LogicalName,AttributeType", "$expand": "OptionSet,GlobalOptionSet"},
        )

    # Records

    async def get_views(self, object_type_code: int) -> list[Payload]:
        return await self._get_values(
            "savedqueries",
            params={
                "$select": "savedqueryid,name,querytype",
                "$filter": f"returnedtypecode eq '{object_type_code}'",
            },
        )

    async def get_charts(self, object_type_code: int) -> list[Payload]:
        return await self._get_values(
            "savedqueryvisualizations",
            params={
                "$select": "savedqueryvisualizationid,name",
                "$filter": f"primaryentitytypecode eq '{object_type_code}'",
            },
        )

    async def get_forms(self, object_type_code: int) -> list[Payload]:
        return await self._get_values(
            "systemforms",
            params={
                "$select": "formid,name,formxml,type,formidunique",
                "$filter": f"objecttypecode eq '{object_type_code}'",
            },
        )

    async def retrieve_record(self, entity_set: str, record_id: str, columns: Sequence[str]) -> Payload:
        return await self._get(f"{entity_set}({record_id})", params={"$select": ",".join(columns)})

    async def update_record(self, entity_set: str, record_id: str, data: Payload) -> None:
        _ = await self._request("PATCH", f"{entity_set}({record_id})", json=dict(data))

    # Loc labels

    async def get_loc_labels(self, entity_set: str, record_id: str, attribute: str) -> Payload:
        body = await self._get(
            "RetrieveLocLabels(EntityMoniker=@p1,AttributeName=@p2,IncludeUnpublished=false)",
            params={
                "@p1": f"{{'@odata.id':'{entity_set}({record_id})'}}",
                "@p2": f"'{attribute}'",
            },
        )
        label = body.get("Label")
        return cast(Payload, label) if isinstance(label, dict) else {}

    async def set_loc_labels(self, entity_set: str, record_id: str, attribute: str, labels: LabelMap) -> None:
        logical_name = ENTITY_SET_LOGICAL_NAMES.get(entity_set, entity_set)
        _ = await self._request(
            "POST",
            "SetLocLabels",
            json={
                "EntityMoniker": {
                    "@odata.type": f"Microsoft.Dynamics.CRM.{logical_name}",
                    f"{logical_name}id": record_id,
                },
                "AttributeName": attribute,
                "Labels": [{"Label": text, "LanguageCode": int(code)} for code, text in labels.items()],
            },
        )

    # Metadata label updates

    async def update_entity_labels(self, logical_name: str, labels: Mapping[str, LabelMap]) -> None:
        path = f"EntityDefinitions(LogicalName='{logical_name}')"
        entity = dict(await self._get(path))
        for qualifier, translations in labels.items():
            if translations:
                entity[qualifier] = merge_label(entity.get(qualifier), translations)
        _ = await self._request("PUT", path, json=entity, headers={"MSCRM.MergeLabels": "true"})

    async def update_attribute_labels(
        self, entity_logical_name: str, attribute_logical_name: str, labels: Mapping[str, LabelMap]
    ) -> None:
        path = f"EntityDefinitions(LogicalName='{entity_logical_name}')/Attributes(LogicalName='{attribute_logical_name}')"
        attribute = dict(await self._get(path))
        for qualifier, translations in labels.items():
            if translations:
                attribute[qualifier] = merge_label(attribute.get(qualifier), translations)
        _ = await self._request("PUT", path, json=attribute, headers={"MSCRM.MergeLabels": "true"})

    async def update_relationship_label(
        self, relationship_id: str, kind: RelationshipKind, entity_logical_name: str, labels: LabelMap
    ) -> None:
        path = f"RelationshipDefinitions({relationship_id})/{_RELATIONSHIP_CASTS[kind]}"
        relationship = dict(await self._get(path))

        menu_key = "AssociatedMenuConfiguration"
        if kind is RelationshipKind.MANY_TO_MANY:
            menu_key = (
                "Entity1AssociatedMenuConfiguration"
                if relationship.get("Entity1LogicalName") == entity_logical_name
                else "Entity2AssociatedMenuConfiguration"
            )

        menu = relationship.get(menu_key)
        menu_config: JSONDict = dict(cast(Mapping[str, object], menu)) if isinstance(menu, Mapping) else {}
        menu_config["Label"] = merge_label(menu_config.get("Label"), labels)
        relationship[menu_key] = menu_config
        _ = await self._request(
            "PUT",
            f"RelationshipDefinitions({relationship_id})",
            json=relationship,
            headers={"MSCRM.MergeLabels": "true"},
        )

    async def update_option_value(
        self,
        entity_logical_name: str | None,
        attribute_logical_name: str | None,
        option_set_name: str | None,
        value: int,
        labels: LabelMap,
        is_description: bool,
    ) -> None:
        body: JSONDict = {"Value": value, "MergeLabels": True}
        if option_set_name:
            body["OptionSetName"] = option_set_name
        else:
            body["EntityLogicalName"] = entity_logical_name
            body["AttributeLogicalName"] = attribute_logical_name
        body[DESCRIPTION if is_description else "Label"] = build_label(labels)
        _ = await self._request("POST", "UpdateOptionValue", json=body)

    async def publish_all(self) -> None:
        logger.info("Publishing all customizations")
        _ = await self._request("POST", "PublishAllXml", json={})
