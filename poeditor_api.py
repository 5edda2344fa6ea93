#!/usr/bin/env python3
"""
PoEditor API Module

This module wraps the PoEditor v2 REST endpoints used to keep a project in sync
with an Android strings file: listing languages, exporting and uploading
translations, and listing, updating and deleting terms. Every endpoint answers
with the same JSON envelope:

    {"response": {"status": "success", "code": "200", "message": "OK"}, "result": {...}}

which is decoded by unwrap_response() for all operations.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import httpx

from poeditor_errors import ApiError, ConfigurationError, ValidationError

logger = logging.getLogger(__name__)

POEDITOR_API_URL = "https://api.poeditor.com/v2/"

CONNECT_TIMEOUT_SECONDS = 30.0
READ_TIMEOUT_SECONDS = 30.0
WRITE_TIMEOUT_SECONDS = 30.0

STATUS_SUCCESS = "success"

UPLOAD_FILE_NAME = "strings.xml"
UPLOAD_CONTENT_TYPE = "text/xml"


# ------------------------------------------------------------------------------
# Enumerated options
# ------------------------------------------------------------------------------


class _ApiOption(Enum):
    """Closed set of string options; the wire value is the lower-case name."""

    @classmethod
    def from_str(cls, value: Union[str, "_ApiOption"]) -> "_ApiOption":
        """
        Return the member matching value, ignoring case.

        Raises:
            ValidationError: If value is not one of the allowed values
        """
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).upper()]
        except KeyError:
            allowed = tuple(member.value for member in cls)
            message = (
                f'Value "{value}" is not a valid {cls.__name__}; allowed values are: '
                + ", ".join(f'"{option}"' for option in allowed)
            )
            logger.error(message)
            raise ValidationError(message, allowed=allowed) from None


class ExportType(_ApiOption):
    """Types of file export allowed in PoEditor."""

    PO = "po"
    POT = "pot"
    MO = "mo"
    XLS = "xls"
    XLSX = "xlsx"
    CSV = "csv"
    INI = "ini"
    RESW = "resw"
    RESX = "resx"
    ANDROID_STRINGS = "android_strings"
    APPLE_STRINGS = "apple_strings"
    XLIFF = "xliff"
    PROPERTIES = "properties"
    KEY_VALUE_JSON = "key_value_json"
    JSON = "json"
    YML = "yml"
    XLF = "xlf"
    XMB = "xmb"
    XTB = "xtb"
    ARB = "arb"
    RISE_360_XLIFF = "rise_360_xliff"


class FilterType(_ApiOption):
    """Filters to use in file exports."""

    TRANSLATED = "translated"
    UNTRANSLATED = "untranslated"
    FUZZY = "fuzzy"
    NOT_FUZZY = "not_fuzzy"
    AUTOMATIC = "automatic"
    NOT_AUTOMATIC = "not_automatic"
    PROOFREAD = "proofread"
    NOT_PROOFREAD = "not_proofread"


class OrderType(_ApiOption):
    """Order to use in file exports."""

    NONE = "none"
    TERMS = "terms"


class UpdatingType(_ApiOption):
    """What a project upload is allowed to update."""

    TERMS = "terms"
    TERMS_TRANSLATIONS = "terms_translations"
    TRANSLATIONS = "translations"


# ------------------------------------------------------------------------------
# Models
# ------------------------------------------------------------------------------


def _parse_date(value: Any) -> Optional[datetime]:
    """Parse PoEditor timestamps such as '2015-05-04T14:21:41+0000'."""
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S%z")
    except (TypeError, ValueError):
        pass
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unparseable PoEditor date: {value!r}")
        return None


@dataclass
class ProjectLanguage:
    """Information about a language in a PoEditor project."""

    code: str
    name: str
    translations: int = 0
    percentage: float = 0.0
    updated: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectLanguage":
        return cls(
            code=data.get("code", ""),
            name=data.get("name", ""),
            translations=int(data.get("translations") or 0),
            percentage=float(data.get("percentage") or 0.0),
            updated=_parse_date(data.get("updated")),
        )


@dataclass
class Term:
    """
    A PoEditor term.

    PoEditor identifies a term by its text plus its context; tags mark which
    synchronization contexts the term belongs to.
    """

    term: str
    context: str = ""
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Term":
        return cls(
            term=data["term"],
            context=data.get("context") or "",
            tags=list(data.get("tags") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"term": self.term, "context": self.context, "tags": list(self.tags)}


@dataclass
class TermsResult:
    """Counters returned by the terms update/delete endpoints."""

    parsed: int = 0
    added: int = 0
    updated: int = 0
    deleted: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TermsResult":
        data = data or {}
        return cls(
            parsed=int(data.get("parsed") or 0),
            added=int(data.get("added") or 0),
            updated=int(data.get("updated") or 0),
            deleted=int(data.get("deleted") or 0),
        )


@dataclass
class UploadResult:
    """Result of a project upload: term counters (if terms were touched) and translation counters."""

    translations: TermsResult
    terms: Optional[TermsResult] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UploadResult":
        terms = data.get("terms")
        return cls(
            translations=TermsResult.from_dict(data.get("translations")),
            terms=TermsResult.from_dict(terms) if terms is not None else None,
        )


# ------------------------------------------------------------------------------
# Response envelope
# ------------------------------------------------------------------------------


def unwrap_response(response: httpx.Response) -> Any:
    """
    Decode a PoEditor response envelope.

    Args:
        response: The HTTP response returned by any PoEditor endpoint

    Returns:
        The "result" payload (an empty dict if the service omitted it)

    Raises:
        ApiError: If the HTTP status is not 2xx, the body is not a valid envelope,
            or the envelope status is not "success"
    """
    try:
        body = response.json()
    except ValueError:
        body = None

    envelope = body.get("response") if isinstance(body, dict) else None
    if not isinstance(envelope, dict):
        raise ApiError(
            "An error occurred while trying to retrieve data from PoEditor API: "
            "malformed response body",
            status_code=response.status_code,
        )

    if response.is_success and envelope.get("status") == STATUS_SUCCESS:
        result = body.get("result")
        return result if result is not None else {}

    code = envelope.get("code")
    raise ApiError(
        envelope.get("message")
        or "An error occurred while trying to retrieve data from PoEditor API",
        code=str(code) if code is not None else None,
        status_code=response.status_code,
    )


def _flag(value: bool) -> str:
    return "1" if value else "0"


def _decode_terms_result(result: Dict[str, Any]) -> TermsResult:
    return TermsResult.from_dict(result.get("terms"))


# ------------------------------------------------------------------------------
# Client
# ------------------------------------------------------------------------------


class PoEditorClient:
    """
    Client for the PoEditor v2 API.

    Owns a single httpx.Client; close it with close() or use the client as a
    context manager.
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = POEDITOR_API_URL,
        connect_timeout: float = CONNECT_TIMEOUT_SECONDS,
        read_timeout: float = READ_TIMEOUT_SECONDS,
        write_timeout: float = WRITE_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            api_token: PoEditor API token with access to the project
            base_url: API root, ending with a slash
            connect_timeout: Seconds to wait for a connection
            read_timeout: Seconds to wait for response data
            write_timeout: Seconds to wait while sending the request
            transport: Optional httpx transport (used by tests)

        Raises:
            ConfigurationError: If no API token is given
        """
        if not api_token:
            raise ConfigurationError("A PoEditor API token is required")

        self.api_token = api_token
        timeout = httpx.Timeout(
            connect_timeout,
            connect=connect_timeout,
            read=read_timeout,
            write=write_timeout,
        )
        self.http = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)
        logger.debug(f"Created PoEditor client with base_url={base_url}")

    def __enter__(self) -> "PoEditorClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.http.close()

    def _post(
        self,
        endpoint: str,
        project_id: int,
        data: Optional[Dict[str, str]] = None,
        files: Optional[Dict[str, Any]] = None,
        decode: Optional[Callable[[Any], Any]] = None,
    ) -> Any:
        """
        Send a POST request to an endpoint and return the unwrapped result,
        converted with decode when given.

        Raises:
            ApiError: If the request fails, the envelope reports an error, or
                the result lacks the fields decode needs
        """
        fields = {"api_token": self.api_token, "id": str(project_id)}
        fields.update(data or {})

        redacted = {k: v for k, v in fields.items() if k != "api_token"}
        logger.debug(f"POST {endpoint} {redacted}")

        try:
            response = self.http.post(endpoint, data=fields, files=files)
        except httpx.HTTPError as e:
            logger.error(f"Error calling PoEditor endpoint '{endpoint}': {e}")
            raise ApiError(f"Request to PoEditor endpoint '{endpoint}' failed: {e}") from e

        logger.debug(f"Response from {endpoint} (HTTP {response.status_code}): {response.text}")

        try:
            result = unwrap_response(response)
        except ApiError as e:
            logger.error(f"PoEditor endpoint '{endpoint}' returned an error: {e}")
            raise

        if decode is None:
            return result
        try:
            return decode(result)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"Malformed result from PoEditor endpoint '{endpoint}': {e!r}")
            raise ApiError(
                f"Malformed result from PoEditor endpoint '{endpoint}': missing or invalid {e}",
                status_code=response.status_code,
            ) from e

    def list_languages(self, project_id: int) -> List[ProjectLanguage]:
        """Return the languages that the PoEditor project contains."""
        return self._post(
            "languages/list",
            project_id,
            decode=lambda result: [
                ProjectLanguage.from_dict(item) for item in result.get("languages") or []
            ],
        )

    def get_export_url(
        self,
        project_id: int,
        language_code: str,
        export_type: Union[ExportType, str],
        filters: Optional[Sequence[Union[FilterType, str]]] = None,
        order: Union[OrderType, str] = OrderType.NONE,
        tags: Optional[Sequence[str]] = None,
        unquoted: bool = False,
    ) -> str:
        """
        Return the URL of an export of the given language.

        The enumerated arguments accept either the enum member or its string
        value (case-insensitive).
        """
        data = {
            "language": language_code,
            "type": ExportType.from_str(export_type).value,
            "order": OrderType.from_str(order).value,
            "options": json.dumps([{"unquoted": 1 if unquoted else 0}]),
        }
        if filters:
            data["filters"] = json.dumps([FilterType.from_str(f).value for f in filters])
        if tags:
            data["tags"] = json.dumps(list(tags))

        return self._post(
            "projects/export", project_id, data, decode=lambda result: result["url"]
        )

    def upload_language(
        self,
        project_id: int,
        language_code: str,
        updating: Union[UpdatingType, str],
        file_content: Union[bytes, str, Path],
        overwrite: bool,
        sync_terms: bool,
        fuzzy_trigger: bool,
        tags: Optional[Sequence[str]] = None,
    ) -> UploadResult:
        """
        Upload a strings file for a language.

        Args:
            file_content: Raw file bytes, XML text, or a Path to the file
        """
        data = {
            "language": language_code,
            "updating": UpdatingType.from_str(updating).value,
            "overwrite": _flag(overwrite),
            "sync_terms": _flag(sync_terms),
            "fuzzy_trigger": _flag(fuzzy_trigger),
        }
        if tags:
            data["tags"] = json.dumps(list(tags))

        if isinstance(file_content, Path):
            content = file_content.read_bytes()
        elif isinstance(file_content, str):
            content = file_content.encode("utf-8")
        else:
            content = file_content

        files = {"file": (UPLOAD_FILE_NAME, content, UPLOAD_CONTENT_TYPE)}
        return self._post(
            "projects/upload", project_id, data, files, decode=UploadResult.from_dict
        )

    def list_terms(self, project_id: int) -> List[Term]:
        """Return every term of the project."""
        return self._post(
            "terms/list",
            project_id,
            decode=lambda result: [Term.from_dict(item) for item in result.get("terms") or []],
        )

    def upsert_terms(
        self, project_id: int, fuzzy_trigger: bool, terms: Sequence[Term]
    ) -> TermsResult:
        """Update the given terms (matched by term and context), replacing their tags."""
        payload = json.dumps([term.to_dict() for term in terms])
        logger.info(f"Updating {len(terms)} terms")
        logger.debug(f"Updating: {payload}")
        return self._post(
            "terms/update",
            project_id,
            {"fuzzy_trigger": _flag(fuzzy_trigger), "data": payload},
            decode=_decode_terms_result,
        )

    def delete_terms(self, project_id: int, terms: Sequence[Term]) -> TermsResult:
        """Delete the given terms from the project."""
        payload = json.dumps([term.to_dict() for term in terms])
        logger.info(f"Deleting {len(terms)} terms")
        logger.debug(f"Deleting: {payload}")
        return self._post(
            "terms/delete", project_id, {"data": payload}, decode=_decode_terms_result
        )
