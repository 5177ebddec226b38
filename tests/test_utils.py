"""
Tests for MockBird Common Utilities

Tests shared utility functions including:
- Safe JSON parsing
- JSON text serialization
- Fixture file loading (YAML and JSON, wrapped and bare lists)
- Hop-by-hop header filtering
"""

import json

import pytest

from mockbird.common.utils import (
    FixtureError,
    FixtureLoader,
    filter_hop_by_hop_headers,
    safe_json_parse,
    to_json_text
)


class TestSafeJsonParse:
    """Test safe_json_parse()."""

    def test_valid_json(self):
        """Test parsing valid JSON."""
        assert safe_json_parse('{"key": "value"}') == {'key': 'value'}
        assert safe_json_parse('[1, 2]') == [1, 2]

    def test_invalid_json(self):
        """Test invalid JSON returns the default."""
        assert safe_json_parse('{invalid}') is None
        assert safe_json_parse('{invalid}', default={}) == {}

    def test_empty_values(self):
        """Test empty and missing values return the default."""
        assert safe_json_parse('', default=[]) == []
        assert safe_json_parse(None, default=[]) == []

    def test_decoded_values_pass_through(self):
        """Test already decoded values are returned unchanged."""
        headers = {'X-Trace': 'abc'}

        assert safe_json_parse(headers) is headers
        assert safe_json_parse([{'type': 'query'}]) == [{'type': 'query'}]

    def test_non_string_input(self):
        """Test unsupported input types return the default."""
        assert safe_json_parse(object(), default='fallback') == 'fallback'


class TestToJsonText:
    """Test to_json_text()."""

    def test_serializes_compactly(self):
        """Test dicts and lists are stored as compact JSON."""
        assert to_json_text({'a': 1}) == '{"a":1}'
        assert to_json_text([]) == '[]'

    def test_strings_unchanged(self):
        """Test strings are assumed to be stored text already."""
        assert to_json_text('{"a": 1}') == '{"a": 1}'

    def test_none_uses_default(self):
        """Test None becomes the default."""
        assert to_json_text(None, '{}') == '{}'


class TestFixtureLoader:
    """Test FixtureLoader."""

    def test_load_wrapped_yaml(self, tmp_path):
        """Test loading the wrapped YAML format."""
        fixture_file = tmp_path / 'mocks.yaml'
        fixture_file.write_text(
            "projects:\n"
            "  - slug: acme\n"
            "    user_id: u1\n"
            "    mocks:\n"
            "      - path: /hello\n"
        )

        projects = FixtureLoader(str(fixture_file)).load()

        assert len(projects) == 1
        assert projects[0]['slug'] == 'acme'
        assert projects[0]['mocks'][0]['path'] == '/hello'

    def test_load_bare_json_list(self, tmp_path):
        """Test loading a JSON list of projects."""
        fixture_file = tmp_path / 'mocks.json'
        fixture_file.write_text(json.dumps([{'slug': 'a', 'user_id': 'u1'}, {'slug': 'b', 'user_id': 'u1'}]))

        projects = FixtureLoader.load_from_file(str(fixture_file))

        assert [p['slug'] for p in projects] == ['a', 'b']

    def test_empty_file(self, tmp_path):
        """Test an empty YAML file has no projects."""
        fixture_file = tmp_path / 'mocks.yaml'
        fixture_file.write_text('')

        assert FixtureLoader(str(fixture_file)).load() == []

    def test_file_not_found(self, tmp_path):
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            FixtureLoader(str(tmp_path / 'missing.yaml')).load()

    def test_unparseable_file(self, tmp_path):
        """Test syntax errors raise FixtureError."""
        fixture_file = tmp_path / 'mocks.json'
        fixture_file.write_text('{not json')

        with pytest.raises(FixtureError, match='Could not parse'):
            FixtureLoader(str(fixture_file)).load()

    def test_unexpected_keys(self, tmp_path):
        """Test a mapping without 'projects' is rejected."""
        fixture_file = tmp_path / 'mocks.yaml'
        fixture_file.write_text("mocks: []\n")

        with pytest.raises(FixtureError, match='Found keys'):
            FixtureLoader(str(fixture_file)).load()

    def test_scalar_document(self, tmp_path):
        """Test a scalar document is rejected."""
        fixture_file = tmp_path / 'mocks.yaml'
        fixture_file.write_text("just text\n")

        with pytest.raises(FixtureError, match='got str'):
            FixtureLoader(str(fixture_file)).load()

    def test_project_without_slug(self, tmp_path):
        """Test every project needs a slug."""
        fixture_file = tmp_path / 'mocks.yaml'
        fixture_file.write_text("- name: Nameless\n  user_id: u1\n")

        with pytest.raises(FixtureError, match='has no slug'):
            FixtureLoader(str(fixture_file)).load()

    def test_project_not_mapping(self, tmp_path):
        """Test project entries must be mappings."""
        fixture_file = tmp_path / 'mocks.yaml'
        fixture_file.write_text("- acme\n")

        with pytest.raises(FixtureError, match='not a mapping'):
            FixtureLoader(str(fixture_file)).load()


class TestFilterHopByHopHeaders:
    """Test filter_hop_by_hop_headers()."""

    def test_drops_framing_headers(self):
        """Test length and framing headers are removed case-insensitively."""
        headers = {
            'Content-Type': 'application/json',
            'Content-Length': '999',
            'Transfer-Encoding': 'chunked',
            'connection': 'keep-alive',
        }

        assert filter_hop_by_hop_headers(headers) == {'Content-Type': 'application/json'}

    def test_stringifies_values(self):
        """Test non-string values are converted and None values skipped."""
        headers = {'X-Count': 3, 'X-Flag': True, 'X-Missing': None}

        assert filter_hop_by_hop_headers(headers) == {'X-Count': '3', 'X-Flag': 'True'}

    def test_custom_skip_list(self):
        """Test a custom list of headers to drop."""
        headers = {'X-Secret': 's', 'Content-Length': '1'}

        assert filter_hop_by_hop_headers(headers, skip=['x-secret']) == {'Content-Length': '1'}
