"""
Tests for vpm_listing_core.discovery — explicit and repository candidates.
"""

import pytest

from vpm_listing_core.discovery import (
    AssetMatch, Origin, discover, match_archive_assets, parse_repo_ref,
)
from vpm_listing_core.errors import RepoReferenceError, TransportFailure
from vpm_listing_core.hub_client import Asset
from vpm_listing_core.listing import parse_listing_source

from conftest import FakeGitHub, release


class TestParseRepoRef:
    def test_valid(self):
        assert parse_repo_ref("owner/name") == ("owner", "name")

    @pytest.mark.parametrize("bad", ["not-a-valid-ref", "a/b/c", "/name", "owner/", "", None])
    def test_invalid(self, bad):
        with pytest.raises(RepoReferenceError):
            parse_repo_ref(bad)


class TestMatchArchiveAssets:
    def test_none(self):
        match, assets = match_archive_assets([Asset("notes.txt", "u")])
        assert match is AssetMatch.NONE
        assert assets == []

    def test_single(self):
        match, assets = match_archive_assets(
            [Asset("notes.txt", "u1"), Asset("pkg.zip", "u2")])
        assert match is AssetMatch.SINGLE
        assert [a.download_url for a in assets] == ["u2"]

    def test_multiple_sorted_by_name(self):
        match, assets = match_archive_assets(
            [Asset("z.zip", "u1"), Asset("a.ZIP", "u2"), Asset("m.zip", "u3")])
        assert match is AssetMatch.MULTIPLE
        assert [a.name for a in assets] == ["a.ZIP", "m.zip", "z.zip"]


class TestDiscover:
    def test_explicit_candidates_carry_declared_identity(self, source_data):
        source_data["packages"] = [{"id": "com.example.tool", "releases": [
            "https://x/tool-1.0.0.zip",
            {"url": "https://x/tool-1.1.0.zip", "version": "1.1.0"},
        ]}]
        result = discover(parse_listing_source(source_data), FakeGitHub())
        assert [c.archive_url for c in result.candidates] == [
            "https://x/tool-1.0.0.zip", "https://x/tool-1.1.0.zip"]
        assert all(c.declared_id == "com.example.tool" for c in result.candidates)
        assert [c.declared_version for c in result.candidates] == [None, "1.1.0"]
        assert all(c.is_explicit for c in result.candidates)

    def test_repository_candidates_have_no_declared_identity(self, source_data):
        source_data["githubRepos"] = ["owner/repo"]
        github = FakeGitHub({"owner/repo": [
            release("v2", ("pkg-2.0.0.zip", "https://x/pkg-2.0.0.zip")),
            release("v1", ("pkg-1.0.0.zip", "https://x/pkg-1.0.0.zip")),
        ]})
        result = discover(parse_listing_source(source_data), github)
        assert [c.archive_url for c in result.candidates] == [
            "https://x/pkg-2.0.0.zip", "https://x/pkg-1.0.0.zip"]
        for c in result.candidates:
            assert c.origin is Origin.REPOSITORY
            assert c.declared_id is None
            assert c.declared_version is None
        assert github.calls == ["owner/repo"]

    def test_release_without_zip_is_skipped(self, source_data):
        source_data["githubRepos"] = ["owner/repo"]
        github = FakeGitHub({"owner/repo": [
            release("R1", ("notes.txt", "https://x/notes.txt")),
            release("R2", ("p.zip", "https://x/p.zip")),
        ]})
        result = discover(parse_listing_source(source_data), github)
        assert [c.archive_url for c in result.candidates] == ["https://x/p.zip"]
        assert len(result.skipped) == 1
        assert "R1" in result.skipped[0]
        assert result.errors == []

    def test_zero_releases(self, source_data):
        source_data["githubRepos"] = ["owner/empty"]
        result = discover(parse_listing_source(source_data),
                          FakeGitHub({"owner/empty": []}))
        assert result.candidates == []
        assert result.errors == []

    def test_malformed_ref_does_not_stop_others(self, source_data):
        source_data["githubRepos"] = ["not-a-valid-ref", "owner/repo"]
        source_data["packages"] = [{"id": "a", "releases": ["https://x/a.zip"]}]
        github = FakeGitHub({"owner/repo": [release("v1", ("p.zip", "https://x/p.zip"))]})
        result = discover(parse_listing_source(source_data), github)
        assert [c.archive_url for c in result.candidates] == [
            "https://x/a.zip", "https://x/p.zip"]
        assert len(result.errors) == 1
        ref, error = result.errors[0]
        assert ref == "not-a-valid-ref"
        assert isinstance(error, RepoReferenceError)

    def test_repo_transport_failure_recorded(self, source_data):
        source_data["githubRepos"] = ["owner/missing", "owner/repo"]
        github = FakeGitHub({"owner/repo": [release("v1", ("p.zip", "https://x/p.zip"))]})
        result = discover(parse_listing_source(source_data), github)
        assert len(result.candidates) == 1
        assert isinstance(result.errors[0][1], TransportFailure)

    def test_multiple_assets_each_become_candidates(self, source_data):
        source_data["githubRepos"] = ["owner/repo"]
        github = FakeGitHub({"owner/repo": [release(
            "v1", ("b.zip", "https://x/b.zip"), ("a.zip", "https://x/a.zip"))]})
        result = discover(parse_listing_source(source_data), github)
        assert [c.archive_url for c in result.candidates] == [
            "https://x/a.zip", "https://x/b.zip"]
