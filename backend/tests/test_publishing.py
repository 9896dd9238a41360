"""Tests for markdown rendering, request normalization and endorsement checks."""

from __future__ import annotations

import io
import unittest
from datetime import datetime, timezone
from unittest import mock
from urllib import error as urllib_error

from app.publishing.endorsement import (
    HttpEndorsementChecker,
    expected_endorsement_href,
    find_endorsement,
    normalize_href,
    parse_head_links,
)
from app.publishing.normalization import InvalidDocumentPath, normalize_document_request, normalize_domain
from app.publishing.rendering import compute_content_hash, derive_path, render_markdown
from app.schemas.document import ExtractedContent


GENERATED_AT = datetime(2026, 10, 19, 8, 0, 0, tzinfo=timezone.utc)


class RenderingTests(unittest.TestCase):
    def test_render_layout(self) -> None:
        content = ExtractedContent.model_validate(
            {
                "title": 'Setup "Guide"',
                "headings": [{"level": 2, "text": "Install"}, {"level": 3, "text": "Configure"}],
                "body": "Follow these steps.",
                "lists": ["one", "two"],
                "tables": ["<table><tr><td>x</td></tr></table>"],
            }
        )

        markdown = render_markdown(
            content,
            source_url="https://docs.example.com/guides/setup/",
            content_hash="abc123",
            generated_at=GENERATED_AT,
        )

        expected = (
            "---\n"
            'title: "Setup \\"Guide\\""\n'
            'source_url: "https://docs.example.com/guides/setup/"\n'
            'source_domain: "docs.example.com"\n'
            'generated_by: "curated-merge-api"\n'
            'generated_at: "2026-10-19T08:00:00+00:00"\n'
            'content_hash: "abc123"\n'
            "---\n"
            '# Setup "Guide"\n\n'
            "## Install\n\n"
            "### Configure\n\n"
            "Follow these steps.\n\n"
            "- one\n- two\n\n"
            "<table><tr><td>x</td></tr></table>\n\n"
        )
        self.assertEqual(markdown, expected)

    def test_empty_sections_are_omitted(self) -> None:
        markdown = render_markdown(
            ExtractedContent(body="Only body."),
            source_url="https://example.com/",
            content_hash="h",
            generated_at=GENERATED_AT,
        )

        self.assertTrue(markdown.endswith("---\nOnly body.\n\n"))
        self.assertNotIn("# ", markdown)

    def test_derive_path(self) -> None:
        self.assertEqual(derive_path("https://example.com/guides/setup/"), "guides/setup")
        self.assertEqual(derive_path("https://example.com/"), "index")
        self.assertEqual(derive_path("https://example.com"), "index")
        self.assertEqual(derive_path("https://example.com/a/b?q=1#top"), "a/b")

    def test_content_hash_ignores_key_order_but_not_content(self) -> None:
        first = ExtractedContent.model_validate({"title": "T", "body": "B", "lists": ["x"]})
        reordered = ExtractedContent.model_validate({"lists": ["x"], "body": "B", "title": "T"})
        changed = ExtractedContent.model_validate({"title": "T", "body": "B!", "lists": ["x"]})

        self.assertEqual(compute_content_hash(first), compute_content_hash(reordered))
        self.assertNotEqual(compute_content_hash(first), compute_content_hash(changed))
        self.assertEqual(len(compute_content_hash(first)), 64)


class NormalizationTests(unittest.TestCase):
    def test_normalize_domain(self) -> None:
        self.assertEqual(normalize_domain(" WWW.Example.COM:8080 "), "example.com")
        self.assertEqual(normalize_domain("docs.example.com"), "docs.example.com")

    def test_request_paths_map_to_document_keys(self) -> None:
        cases = {
            "/example.com/guides/setup.md": ("example.com", "guides/setup"),
            "/www.example.com/guides//setup": ("example.com", "guides/setup"),
            "/example.com": ("example.com", "index"),
            "/example.com/": ("example.com", "index"),
            "/Example.com:443/index.md": ("example.com", "index"),
            "/example.com/v1.2/notes_final-draft.md": ("example.com", "v1.2/notes_final-draft"),
        }
        for raw, (domain, path) in cases.items():
            with self.subTest(raw=raw):
                key = normalize_document_request(raw)
                self.assertEqual((key.domain, key.path), (domain, path))

    def test_unsafe_paths_are_rejected(self) -> None:
        for raw in ["/", "", "/example.com/../secrets", "/example.com/a b", "/example.com/café", "/example.com/a%2e"]:
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidDocumentPath):
                    normalize_document_request(raw)


class EndorsementTests(unittest.TestCase):
    PAGE = """
    <html>
      <head>
        <title>Setup</title>
        <link rel="stylesheet" href="/site.css">
        <link rel="alternate" type="text/markdown" href="http://MD.example.net/example.com/guides/setup.md/" />
      </head>
      <body>
        <link rel="alternate" type="text/markdown" href="https://md.example.net/example.com/other.md">
      </body>
    </html>
    """

    def test_normalize_href(self) -> None:
        self.assertEqual(
            normalize_href("http://MD.Example.net/a/b.md/#frag"),
            "https://md.example.net/a/b.md",
        )
        self.assertEqual(normalize_href("relative/path"), "relative/path")

    def test_only_head_links_are_collected(self) -> None:
        links = parse_head_links(self.PAGE)

        self.assertEqual(len(links), 2)
        self.assertEqual(links[0]["rel"], "stylesheet")

    def test_multi_valued_rel_and_headless_pages(self) -> None:
        page = (
            "<html><head>"
            '<link rel="nofollow alternate" type="Text/Markdown" href="https://md.example.net/example.com/index.md">'
            "</head><body></body></html>"
        )
        expected = expected_endorsement_href("md.example.net", "example.com", "index")

        links = parse_head_links(page)

        self.assertEqual(links[0]["rel"], "nofollow alternate")
        self.assertIsNotNone(find_endorsement(page, expected))
        self.assertEqual(parse_head_links("<p>no head here</p>"), [])

    def test_find_endorsement_matches_normalized_href(self) -> None:
        expected = expected_endorsement_href("md.example.net", "example.com", "guides/setup")
        body_only = expected_endorsement_href("md.example.net", "example.com", "other")

        self.assertIsNotNone(find_endorsement(self.PAGE, expected))
        self.assertIsNone(find_endorsement(self.PAGE, body_only))

    def test_http_checker_reports_valid_and_missing_endorsements(self) -> None:
        checker = HttpEndorsementChecker(public_host="md.example.net")
        response = mock.MagicMock()
        response.__enter__.return_value = response
        response.headers.get_content_charset.return_value = "utf-8"
        response.read.return_value = self.PAGE.encode("utf-8")

        with mock.patch("app.publishing.endorsement.urllib_request.urlopen", return_value=response):
            valid = checker.check(source_url="https://example.com/guides/setup", domain="example.com", path="guides/setup")
            missing = checker.check(source_url="https://example.com/other", domain="example.com", path="other")

        self.assertTrue(valid.valid)
        self.assertFalse(missing.valid)
        self.assertEqual(missing.error, "endorsement missing or incorrect")
        self.assertEqual(missing.expected_href, "https://md.example.net/example.com/other.md")

    def test_http_checker_reports_fetch_errors(self) -> None:
        checker = HttpEndorsementChecker(public_host="md.example.net")
        not_found = urllib_error.HTTPError("https://example.com/x", 404, "Not Found", {}, io.BytesIO(b""))

        with mock.patch("app.publishing.endorsement.urllib_request.urlopen", side_effect=not_found):
            http_failure = checker.check(source_url="https://example.com/x", domain="example.com", path="x")
        with mock.patch(
            "app.publishing.endorsement.urllib_request.urlopen",
            side_effect=urllib_error.URLError("connection refused"),
        ):
            network_failure = checker.check(source_url="https://example.com/x", domain="example.com", path="x")

        self.assertEqual(http_failure.error, "source fetch HTTP 404")
        self.assertFalse(network_failure.valid)
        self.assertTrue(network_failure.error.startswith("source fetch failed"))


if __name__ == "__main__":
    unittest.main()
