#!/usr/bin/env python3
"""
PoEditor Strings Uploader

This script uploads an Android resource file (strings.xml) to a PoEditor project.
Before uploading, it synchronizes the project's terms with the file: terms still
present locally are tagged with the configured tags, terms that disappeared lose
them, and terms left without any tag are deleted from the project.
"""

import argparse
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from lxml import etree

from language_utils import create_values_modifier_from_lang_code, get_language_name
from poeditor_api import (
    PoEditorClient,
    ProjectLanguage,
    Term,
    TermsResult,
    UpdatingType,
    UploadResult,
)
from poeditor_errors import ConfigurationError, ParseError, PoEditorSyncError
from term_sync import TermSyncPlan, reconcile_terms

DEFAULT_LANG = "en"
DEFAULT_RES_FILE_NAME = "strings"

# ------------------------------------------------------------------------------
# Logger Setup
# ------------------------------------------------------------------------------

logger = logging.getLogger(__name__)


def configure_logging(trace: bool) -> None:
    """Configure logging to console."""
    log_level = logging.DEBUG if trace else logging.INFO
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")

    # Configure the root logger so every module shares the same handlers/level.
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    else:
        for existing_handler in root_logger.handlers:
            existing_handler.setFormatter(formatter)

    logger.setLevel(log_level)

    # Request bodies are logged by poeditor_api; keep the transport quiet.
    for name in ["httpx", "httpcore"]:
        logging.getLogger(name).setLevel(logging.WARNING)


# ------------------------------------------------------------------------------
# Android Resource Parsing
# ------------------------------------------------------------------------------


def _create_secure_parser() -> etree.XMLParser:
    """Return an XML parser configured to avoid external entity resolution."""
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        dtd_validation=False,
        load_dtd=False,
    )


class AndroidStringsFile:
    """
    Represents a strings.xml file whose <string> names are PoEditor terms.
    """

    def __init__(self, path: Path, tags: Sequence[str] = ()) -> None:
        self.path: Path = Path(path)
        self.tags: List[str] = list(tags)
        self.terms: Dict[str, Term] = {}  # name -> term tagged with self.tags
        self.parse_file()

    def parse_file(self) -> None:
        """Parses the file and extracts the name of every <string> element."""
        if not self.path.is_file():
            logger.error(f"Strings file {self.path} does not exist")
            raise ParseError(f"Strings file {self.path} does not exist")

        try:
            tree = etree.parse(str(self.path), _create_secure_parser())
        except etree.XMLSyntaxError as pe:
            logger.error(f"XML parse error in {self.path}: {pe}")
            raise ParseError(f"XML parse error in {self.path}: {pe}") from pe
        except OSError as e:
            logger.error(f"Error reading {self.path}: {e}")
            raise ParseError(f"Error reading {self.path}: {e}") from e

        for elem in tree.getroot().iter("string"):
            name = elem.attrib.get("name")
            if not name:
                logger.debug(f"Skipping <string> without name on line {elem.sourceline}")
                continue
            self.terms[name] = Term(term=name, tags=list(self.tags))

        logger.debug(f"Parsed {len(self.terms)} terms from {self.path}")


def extract_terms(path: Path, tags: Sequence[str] = ()) -> Dict[str, Term]:
    """Return the terms of an Android strings file, keyed by name and tagged with tags."""
    return AndroidStringsFile(path, tags).terms


# ------------------------------------------------------------------------------
# Upload
# ------------------------------------------------------------------------------


@dataclass(frozen=True)
class UploadConfig:
    """Settings of one upload run."""

    api_token: str
    project_id: int
    res_dir_path: Optional[str] = None
    default_lang: str = DEFAULT_LANG
    language: Optional[str] = None  # defaults to default_lang
    tags: Sequence[str] = ()
    language_overrides: Mapping[str, str] = field(default_factory=dict)
    res_file_name: str = DEFAULT_RES_FILE_NAME
    log_trace: bool = False
    list_languages: bool = False

    @property
    def language_code(self) -> str:
        return self.language or self.default_lang


@dataclass
class UploadSummary:
    """Everything done by an upload run."""

    language_code: str
    values_file: Path
    local_terms: int
    plan: TermSyncPlan
    update_result: TermsResult
    delete_result: Optional[TermsResult]
    upload_result: UploadResult


def resolve_values_file(
    language_code: str,
    default_lang: str,
    res_dir_path: Optional[str],
    language_overrides: Optional[Mapping[str, str]] = None,
    res_file_name: str = DEFAULT_RES_FILE_NAME,
) -> Path:
    """
    Return the strings file for a language.

    An explicit override directory wins. Otherwise the directory is "values"
    for the default language and "values-<qualifier>" for the others, inside
    res_dir_path:

      - ("en", "en")    -> <res>/values/strings.xml
      - ("es", "en")    -> <res>/values-es/strings.xml
      - ("pt-br", "en") -> <res>/values-pt-rBR/strings.xml
    """
    override = (language_overrides or {}).get(language_code)
    if override:
        values_dir = Path(override)
    elif not res_dir_path:
        raise ConfigurationError(
            f"No res directory or values override configured for language '{language_code}'"
        )
    else:
        values_folder_name = "values"
        values_modifier = create_values_modifier_from_lang_code(language_code)
        if values_modifier != default_lang:
            values_folder_name = f"{values_folder_name}-{values_modifier}"
        values_dir = Path(res_dir_path) / values_folder_name

    return values_dir / f"{res_file_name}.xml"


def sync_terms(
    values_file: Path,
    project_id: int,
    client: PoEditorClient,
    tags: Sequence[str],
):
    """
    Synchronize the project's terms with the terms of a strings file.

    Returns:
        Tuple of (local term count, plan, update result, delete result or None)
    """
    local_terms = extract_terms(values_file, tags)
    remote_terms = {term.term: term for term in client.list_terms(project_id)}
    logger.info(
        f"Found {len(local_terms)} local terms and {len(remote_terms)} remote terms"
    )

    plan = reconcile_terms(local_terms, remote_terms, tags)

    update_result = client.upsert_terms(
        project_id, fuzzy_trigger=True, terms=plan.to_upsert
    )
    logger.info(f"Updated terms: {update_result}")

    delete_result = None
    if plan.to_delete:
        delete_result = client.delete_terms(project_id, plan.to_delete)
        logger.info(f"Deleted terms: {delete_result}")

    return len(local_terms), plan, update_result, delete_result


def upload_poeditor_strings(
    config: UploadConfig, client: Optional[PoEditorClient] = None
) -> Optional[UploadSummary]:
    """
    Sync terms and upload the strings file of config.language_code.

    Args:
        config: Settings of the run
        client: PoEditor client to use; one is created (and closed) if omitted

    Returns:
        The UploadSummary, or None when the language has no strings file

    Raises:
        PoEditorSyncError: Any error is logged and re-raised
    """
    owns_client = client is None
    try:
        if client is None:
            client = PoEditorClient(config.api_token)

        language_code = config.language_code
        values_file = resolve_values_file(
            language_code,
            config.default_lang,
            config.res_dir_path,
            config.language_overrides,
            config.res_file_name,
        )

        if not values_file.exists():
            logger.warning(
                f"No strings file found for language '{language_code}' at {values_file}; nothing to upload"
            )
            return None

        local_count, plan, update_result, delete_result = sync_terms(
            values_file, config.project_id, client, config.tags
        )

        logger.info(f"Uploading strings file for language code: {language_code}")
        upload_result = client.upload_language(
            config.project_id,
            language_code,
            updating=UpdatingType.TERMS_TRANSLATIONS,
            file_content=values_file,
            overwrite=True,
            sync_terms=False,
            fuzzy_trigger=True,
            tags=list(config.tags),
        )
        logger.info(f"Uploaded file result: {upload_result}")

        return UploadSummary(
            language_code=language_code,
            values_file=values_file,
            local_terms=local_count,
            plan=plan,
            update_result=update_result,
            delete_result=delete_result,
            upload_result=upload_result,
        )
    except Exception:
        logger.error(
            "An error happened when uploading strings to the project. "
            "Please review the input parameters and try again"
        )
        raise
    finally:
        if owns_client and client is not None:
            client.close()


# ------------------------------------------------------------------------------
# Reports
# ------------------------------------------------------------------------------


def create_languages_report(languages: List[ProjectLanguage]) -> str:
    """Return a Markdown table of the project languages."""
    report = "# Project Languages\n\n"
    if not languages:
        return report + "The project has no languages."

    report += "| Code | Language | Translations | Progress |\n"
    report += "| ---- | -------- | ------------ | -------- |\n"
    for language in languages:
        name = get_language_name(language.code)
        if name == language.code:
            name = language.name
        report += (
            f"| {language.code} | {name} | {language.translations} "
            f"| {language.percentage:g}% |\n"
        )
    return report


def create_upload_report(summary: Optional[UploadSummary]) -> str:
    """
    Generate a Markdown report of an upload run.

    Args:
        summary: The result of upload_poeditor_strings()

    Returns:
        The report as a Markdown string
    """
    report = "# PoEditor Upload Report\n\n"
    if summary is None:
        return report + "No strings file was uploaded."

    report += (
        f"Uploaded `{summary.values_file}` as "
        f"**{get_language_name(summary.language_code)}** ({summary.language_code}) "
        f"with {summary.local_terms} terms.\n\n"
    )

    report += "## Terms\n\n"
    report += "| Action | Count |\n"
    report += "| ------ | ----- |\n"
    report += f"| Tagged | {len(summary.plan.to_upsert)} |\n"
    report += f"| Deleted | {len(summary.plan.to_delete)} |\n\n"

    if summary.plan.to_delete:
        report += "Deleted terms: " + ", ".join(
            f"`{term.term}`" for term in summary.plan.to_delete
        )
        report += "\n\n"

    translations = summary.upload_result.translations
    report += "## Translations\n\n"
    report += "| Parsed | Added | Updated |\n"
    report += "| ------ | ----- | ------- |\n"
    report += f"| {translations.parsed} | {translations.added} | {translations.updated} |\n"

    return report


# ------------------------------------------------------------------------------
# Configuration
# ------------------------------------------------------------------------------


def _split_list(value: Optional[str]) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


def _parse_overrides(entries: Sequence[str]) -> Dict[str, str]:
    """Parse "lang=path" entries into a mapping."""
    overrides: Dict[str, str] = {}
    for entry in entries:
        lang, sep, path = entry.partition("=")
        if not sep or not lang.strip() or not path.strip():
            raise ConfigurationError(
                f"Invalid language override '{entry}'. Expected format 'lang=path'."
            )
        overrides[lang.strip()] = path.strip()
    return overrides


def _parse_project_id(value: Optional[str]) -> int:
    if value is None or not str(value).strip():
        raise ConfigurationError(
            "PoEditor project id not provided. Pass --project-id or set INPUT_PROJECT_ID."
        )
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(
            f"Invalid PoEditor project id '{value}'; it must be an integer."
        ) from None


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PoEditor Strings Uploader")
    parser.add_argument(
        "--api-token",
        default=None,
        help="PoEditor API token (defaults to the POEDITOR_API_TOKEN environment variable)",
    )
    parser.add_argument("--project-id", default=None, help="PoEditor project id")
    parser.add_argument(
        "--res-path",
        dest="res_dir_path",
        default=None,
        help="Path to the Android res directory containing the values folders",
    )
    parser.add_argument(
        "--default-lang",
        default=DEFAULT_LANG,
        help=f"Language code stored in the plain 'values' folder (default: {DEFAULT_LANG})",
    )
    parser.add_argument(
        "--language",
        default=None,
        help="Language code to upload (default: the default language)",
    )
    parser.add_argument(
        "--tags",
        default="",
        help="Comma separated list of tags identifying the terms of this strings file",
    )
    parser.add_argument(
        "--language-override",
        dest="language_overrides",
        action="append",
        default=[],
        metavar="LANG=PATH",
        help="Use PATH as the values folder of LANG (can be repeated)",
    )
    parser.add_argument(
        "--res-file-name",
        default=DEFAULT_RES_FILE_NAME,
        help=f"Base name of the strings file (default: {DEFAULT_RES_FILE_NAME})",
    )
    parser.add_argument(
        "-l",
        "--log-trace",
        action="store_true",
        help="Log detailed trace information",
    )
    parser.add_argument(
        "--list-languages",
        action="store_true",
        help="Only list the project languages",
    )
    return parser


def load_config(
    argv: Optional[Sequence[str]] = None, environ: Optional[Mapping[str, str]] = None
) -> UploadConfig:
    """
    Build the UploadConfig from environment variables (GitHub Actions) or
    command-line arguments.

    Raises:
        ConfigurationError: If a required setting is missing or invalid
    """
    environ = os.environ if environ is None else environ
    is_github = environ.get("GITHUB_ACTIONS", "false").lower() == "true"

    if is_github:
        api_token = environ.get("INPUT_API_TOKEN") or environ.get("POEDITOR_API_TOKEN")
        project_id = environ.get("INPUT_PROJECT_ID")
        res_dir_path = environ.get("INPUT_DEFAULT_RES_PATH") or None
        default_lang = environ.get("INPUT_DEFAULT_LANG") or DEFAULT_LANG
        language = environ.get("INPUT_LANGUAGE") or None
        tags = _split_list(environ.get("INPUT_TAGS"))
        overrides = _parse_overrides(_split_list(environ.get("INPUT_LANGUAGE_OVERRIDES")))
        res_file_name = environ.get("INPUT_RES_FILE_NAME") or DEFAULT_RES_FILE_NAME
        log_trace = environ.get("INPUT_LOG_TRACE", "false").lower() == "true"
        list_languages = environ.get("INPUT_LIST_LANGUAGES", "false").lower() == "true"
    else:
        args = build_arg_parser().parse_args(argv)
        api_token = args.api_token or environ.get("POEDITOR_API_TOKEN")
        project_id = args.project_id
        res_dir_path = args.res_dir_path
        default_lang = args.default_lang
        language = args.language
        tags = _split_list(args.tags)
        overrides = _parse_overrides(args.language_overrides)
        res_file_name = args.res_file_name
        log_trace = args.log_trace
        list_languages = args.list_languages

    if not api_token:
        raise ConfigurationError(
            "PoEditor API token not found. Pass --api-token or set POEDITOR_API_TOKEN."
        )
    project_id = _parse_project_id(project_id)
    if not list_languages and not res_dir_path and not overrides.get(language or default_lang):
        raise ConfigurationError(
            "Android res directory not provided. Pass --res-path or set INPUT_DEFAULT_RES_PATH."
        )

    return UploadConfig(
        api_token=api_token,
        project_id=project_id,
        res_dir_path=res_dir_path,
        default_lang=default_lang,
        language=language,
        tags=tuple(tags),
        language_overrides=overrides,
        res_file_name=res_file_name,
        log_trace=log_trace,
        list_languages=list_languages,
    )


# ------------------------------------------------------------------------------
# Main Entry Point
# ------------------------------------------------------------------------------


def _write_output(name: str, report: str) -> None:
    """Write a report to GITHUB_OUTPUT when available, to stdout otherwise."""
    if "GITHUB_OUTPUT" in os.environ:
        with open(os.environ["GITHUB_OUTPUT"], "a", encoding="utf-8") as f:
            delimiter = "EOF_POEDITOR_REPORT_5c1b2e7d"
            print(f"{name}<<{delimiter}", file=f)
            print(report, file=f)
            print(delimiter, file=f)
    else:
        print(report)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point for the PoEditor Strings Uploader.
    Loads the configuration, syncs the project's terms and uploads the strings file.
    """
    try:
        config = load_config(argv)
    except ConfigurationError as e:
        configure_logging(False)
        logger.error(f"Upload configuration failed: {e}")
        return 1

    configure_logging(config.log_trace)
    # Don't log the config because it contains the API token
    logger.info(
        f"Project: {config.project_id}, Language: {config.language_code}, "
        f"Res Path: {config.res_dir_path}, Tags: {list(config.tags)}, "
        f"Overrides: {dict(config.language_overrides)}, File: {config.res_file_name}.xml"
    )

    try:
        with PoEditorClient(config.api_token) as client:
            if config.list_languages:
                languages = client.list_languages(config.project_id)
                _write_output("languages_report", create_languages_report(languages))
                return 0

            summary = upload_poeditor_strings(config, client)
    except PoEditorSyncError as e:
        logger.error(f"Upload failed: {e}")
        return 1

    _write_output("upload_report", create_upload_report(summary))
    return 0


if __name__ == "__main__":
    sys.exit(main())
