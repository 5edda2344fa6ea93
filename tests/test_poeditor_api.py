#!/usr/bin/env python3
"""
Tests for the PoEditor API client.

HTTP traffic is served by httpx.MockTransport, so no request leaves the process.
"""
import json
import os
import sys
import unittest
from datetime import timezone
from pathlib import Path
from tempfile import TemporaryDirectory
from urllib.parse import parse_qs

import httpx

# Add parent directory to path for module import
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from poeditor_api import (
    ExportType,
    FilterType,
    OrderType,
    PoEditorClient,
    Term,
    UpdatingType,
    unwrap_response,
)
from poeditor_errors import ApiError, ConfigurationError, PoEditorSyncError, ValidationError


def success(result=None):
    body = {"response": {"status": "success", "code": "200", "message": "OK"}}
    if result is not None:
        body["result"] = result
    return httpx.Response(200, json=body)


def form(request):
    return {k: v[0] for k, v in parse_qs(request.content.decode("utf-8")).items()}


class PoEditorClientTestCase(unittest.TestCase):
    """Creates a client whose requests are answered by self.respond()."""

    def setUp(self):
        self.requests = []
        self.response = success({})
        self.client = PoEditorClient(
            "secret-token", transport=httpx.MockTransport(self.handle)
        )
        self.addCleanup(self.client.close)

    def handle(self, request):
        request.read()
        self.requests.append(request)
        return self.response


class TestListLanguages(PoEditorClientTestCase):

    def test_list_languages(self):
        self.response = success({
            "languages": [
                {
                    "name": "English",
                    "code": "en",
                    "translations": 13,
                    "percentage": 12.5,
                    "updated": "2015-05-04T14:21:41+0000",
                },
                {"name": "Spanish", "code": "es", "translations": 0, "percentage": 0, "updated": ""},
            ]
        })

        languages = self.client.list_languages(12345)

        request = self.requests[0]
        self.assertEqual(request.method, "POST")
        self.assertEqual(str(request.url), "https://api.poeditor.com/v2/languages/list")
        self.assertEqual(form(request), {"api_token": "secret-token", "id": "12345"})

        self.assertEqual([l.code for l in languages], ["en", "es"])
        self.assertEqual(languages[0].translations, 13)
        self.assertEqual(languages[0].percentage, 12.5)
        self.assertEqual(languages[0].updated.year, 2015)
        self.assertEqual(languages[0].updated.utcoffset(), timezone.utc.utcoffset(None))
        self.assertIsNone(languages[1].updated)


class TestExport(PoEditorClientTestCase):

    def test_get_export_url(self):
        self.response = success({"url": "https://api.poeditor.com/v2/download/file/abc"})

        url = self.client.get_export_url(
            1,
            "es",
            "ANDROID_STRINGS",
            filters=[FilterType.TRANSLATED, "not_fuzzy"],
            order="terms",
            tags=["android"],
            unquoted=True,
        )

        self.assertEqual(url, "https://api.poeditor.com/v2/download/file/abc")
        fields = form(self.requests[0])
        self.assertEqual(fields["language"], "es")
        self.assertEqual(fields["type"], "android_strings")
        self.assertEqual(fields["order"], "terms")
        self.assertEqual(json.loads(fields["filters"]), ["translated", "not_fuzzy"])
        self.assertEqual(json.loads(fields["tags"]), ["android"])
        self.assertEqual(json.loads(fields["options"]), [{"unquoted": 1}])

    def test_defaults_omit_filters_and_tags(self):
        self.response = success({"url": "u"})
        self.client.get_export_url(1, "en", ExportType.JSON)
        fields = form(self.requests[0])
        self.assertNotIn("filters", fields)
        self.assertNotIn("tags", fields)
        self.assertEqual(fields["order"], "none")
        self.assertEqual(json.loads(fields["options"]), [{"unquoted": 0}])

    def test_invalid_export_type(self):
        with self.assertRaises(ValidationError) as ctx:
            self.client.get_export_url(1, "en", "foo")

        self.assertIn('"android_strings"', str(ctx.exception))
        self.assertIn("android_strings", ctx.exception.allowed)
        self.assertEqual(self.requests, [])


class TestOptions(unittest.TestCase):

    def test_from_str_is_case_insensitive(self):
        self.assertIs(ExportType.from_str("Apple_Strings"), ExportType.APPLE_STRINGS)
        self.assertIs(OrderType.from_str("NONE"), OrderType.NONE)
        self.assertIs(UpdatingType.from_str("terms_translations"), UpdatingType.TERMS_TRANSLATIONS)
        self.assertIs(FilterType.from_str(FilterType.FUZZY), FilterType.FUZZY)

    def test_from_str_lists_allowed_values(self):
        with self.assertRaises(ValidationError) as ctx:
            UpdatingType.from_str("everything")
        self.assertEqual(ctx.exception.allowed, ("terms", "terms_translations", "translations"))
        self.assertIn("UpdatingType", str(ctx.exception))

    def test_validation_error_is_value_error(self):
        with self.assertRaises(ValueError):
            OrderType.from_str("random")


class TestUpload(PoEditorClientTestCase):

    def test_upload_language(self):
        self.response = success({
            "terms": {"parsed": 3, "added": 1, "deleted": 0},
            "translations": {"parsed": 3, "added": 2, "updated": 1},
        })

        result = self.client.upload_language(
            7,
            "en",
            UpdatingType.TERMS_TRANSLATIONS,
            b'<resources><string name="a">A</string></resources>',
            overwrite=True,
            sync_terms=False,
            fuzzy_trigger=True,
            tags=["android"],
        )

        request = self.requests[0]
        self.assertEqual(request.url.path, "/v2/projects/upload")
        self.assertIn("multipart/form-data", request.headers["content-type"])
        content = request.content
        self.assertIn(b'name="api_token"\r\n\r\nsecret-token', content)
        self.assertIn(b'name="updating"\r\n\r\nterms_translations', content)
        self.assertIn(b'name="overwrite"\r\n\r\n1', content)
        self.assertIn(b'name="sync_terms"\r\n\r\n0', content)
        self.assertIn(b'name="fuzzy_trigger"\r\n\r\n1', content)
        self.assertIn(b'name="tags"\r\n\r\n["android"]', content)
        self.assertIn(b'filename="strings.xml"', content)
        self.assertIn(b"Content-Type: text/xml", content)
        self.assertIn(b'<string name="a">A</string>', content)

        self.assertEqual(result.terms.added, 1)
        self.assertEqual(result.translations.added, 2)
        self.assertEqual(result.translations.updated, 1)

    def test_upload_from_path(self):
        self.response = success({"translations": {"parsed": 1, "added": 0, "updated": 0}})
        with TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "strings.xml"
            path.write_text('<resources><string name="z">Z</string></resources>', encoding="utf-8")

            result = self.client.upload_language(
                7, "es", "translations", path,
                overwrite=False, sync_terms=False, fuzzy_trigger=False,
            )

        self.assertIn(b'<string name="z">Z</string>', self.requests[0].content)
        self.assertNotIn(b'name="tags"', self.requests[0].content)
        self.assertIsNone(result.terms)
        self.assertEqual(result.translations.parsed, 1)


class TestTerms(PoEditorClientTestCase):

    def test_list_terms(self):
        self.response = success({
            "terms": [
                {"term": "a", "context": "", "tags": ["t1"], "plural": "", "reference": ""},
                {"term": "b", "context": "menu", "tags": None},
            ]
        })

        terms = self.client.list_terms(3)

        self.assertEqual(self.requests[0].url.path, "/v2/terms/list")
        self.assertEqual(terms, [Term("a", "", ["t1"]), Term("b", "menu", [])])

    def test_list_terms_empty_project(self):
        self.response = success({"terms": None})
        self.assertEqual(self.client.list_terms(3), [])

    def test_upsert_terms(self):
        self.response = success({"terms": {"parsed": 2, "updated": 2}})

        result = self.client.upsert_terms(
            3, fuzzy_trigger=True, terms=[Term("a", tags=["t1"]), Term("b", tags=["x", "t1"])]
        )

        fields = form(self.requests[0])
        self.assertEqual(self.requests[0].url.path, "/v2/terms/update")
        self.assertEqual(fields["fuzzy_trigger"], "1")
        self.assertEqual(
            json.loads(fields["data"]),
            [
                {"term": "a", "context": "", "tags": ["t1"]},
                {"term": "b", "context": "", "tags": ["x", "t1"]},
            ],
        )
        self.assertEqual(result.parsed, 2)
        self.assertEqual(result.updated, 2)

    def test_delete_terms(self):
        self.response = success({"terms": {"parsed": 1, "deleted": 1}})

        result = self.client.delete_terms(3, [Term("c")])

        fields = form(self.requests[0])
        self.assertEqual(self.requests[0].url.path, "/v2/terms/delete")
        self.assertEqual(json.loads(fields["data"]), [{"term": "c", "context": "", "tags": []}])
        self.assertEqual(result.deleted, 1)


class TestErrors(PoEditorClientTestCase):

    def test_fail_envelope(self):
        self.response = httpx.Response(200, json={
            "response": {"status": "fail", "code": "4011", "message": "Invalid API Token"}
        })

        with self.assertRaises(ApiError) as ctx:
            self.client.list_terms(3)

        self.assertEqual(ctx.exception.code, "4011")
        self.assertEqual(ctx.exception.message, "Invalid API Token")
        self.assertIn("4011", str(ctx.exception))

    def test_http_error_without_envelope(self):
        self.response = httpx.Response(502, text="Bad Gateway")

        with self.assertRaises(ApiError) as ctx:
            self.client.list_languages(3)

        self.assertEqual(ctx.exception.status_code, 502)
        self.assertIsNone(ctx.exception.code)

    def test_http_error_with_envelope(self):
        self.response = httpx.Response(
            403, json={"response": {"status": "success", "code": "403", "message": "Forbidden"}}
        )
        with self.assertRaises(ApiError) as ctx:
            self.client.list_languages(3)
        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(ctx.exception.message, "Forbidden")

    def test_transport_error(self):
        def fail(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = PoEditorClient("token", transport=httpx.MockTransport(fail))
        self.addCleanup(client.close)

        with self.assertRaises(ApiError) as ctx:
            client.list_terms(3)
        self.assertIsInstance(ctx.exception.__cause__, httpx.ConnectError)

    def test_export_result_without_url(self):
        self.response = success()

        with self.assertRaises(ApiError) as ctx:
            self.client.get_export_url(1, "en", "json")

        self.assertIn("url", str(ctx.exception))
        self.assertEqual(ctx.exception.status_code, 200)
        self.assertIsInstance(ctx.exception.__cause__, KeyError)

    def test_term_without_name(self):
        self.response = success({"terms": [{"context": ""}]})

        with self.assertRaises(ApiError) as ctx:
            self.client.list_terms(1)

        self.assertIn("term", str(ctx.exception))

    def test_result_of_wrong_type(self):
        self.response = success(["not", "an", "object"])

        with self.assertRaises(ApiError):
            self.client.list_languages(1)

    def test_malformed_result_is_sync_error(self):
        """Malformed results stop the run like any other API failure"""
        self.response = success({"translations": "none"})

        with self.assertRaises(PoEditorSyncError):
            self.client.upload_language(
                1, "en", "terms", b"<resources/>",
                overwrite=True, sync_terms=False, fuzzy_trigger=True,
            )

    def test_missing_token(self):
        with self.assertRaises(ConfigurationError):
            PoEditorClient("")


class TestUnwrapResponse(unittest.TestCase):

    def test_returns_result(self):
        response = success({"url": "u"})
        self.assertEqual(unwrap_response(response), {"url": "u"})

    def test_missing_result_is_empty(self):
        self.assertEqual(unwrap_response(success()), {})

    def test_non_object_body(self):
        with self.assertRaises(ApiError):
            unwrap_response(httpx.Response(200, json=["not", "an", "envelope"]))

    def test_non_json_body(self):
        with self.assertRaises(ApiError):
            unwrap_response(httpx.Response(200, text="<html></html>"))


if __name__ == "__main__":
    unittest.main()
