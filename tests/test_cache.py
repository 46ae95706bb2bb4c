"""Tests for the reference cache."""
import json

from repo_degit.source import parse_source

H1 = "1" * 40
H2 = "2" * 40


def _seed_archive(repo_cache, commit):
    path = repo_cache.archive_path(commit)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"archive")
    return path


def test_cache_dir_layout(cache):
    src = parse_source("gitlab:group/project")
    assert cache.cache_dir_for(src) == cache.root / "gitlab" / "group" / "project"


def test_update_creates_map_and_access_log(cache):
    repo_cache = cache.for_source(parse_source("user/repo"))

    repo_cache.update("main", H1)

    assert json.loads(repo_cache.ref_map_path.read_text()) == {"main": H1}
    access = json.loads(repo_cache.access_log_path.read_text())
    assert access["main"].endswith("Z")
    assert repo_cache.get_commit("main") == H1
    assert repo_cache.get_commit("dev") is None


def test_get_archive_is_existence_check(cache):
    repo_cache = cache.for_source(parse_source("user/repo"))
    assert repo_cache.get_archive(H1) is None

    path = _seed_archive(repo_cache, H1)

    assert repo_cache.get_archive(H1) == path


def test_repointing_ref_deletes_orphaned_archive(cache):
    repo_cache = cache.for_source(parse_source("user/repo"))
    repo_cache.update("main", H1)
    old = _seed_archive(repo_cache, H1)

    repo_cache.update("main", H2)

    assert not old.exists()
    assert repo_cache.get_commit("main") == H2


def test_archive_kept_while_another_ref_points_at_it(cache):
    repo_cache = cache.for_source(parse_source("user/repo"))
    repo_cache.update("main", H1)
    repo_cache.update("v1", H1)
    old = _seed_archive(repo_cache, H1)

    repo_cache.update("main", H2)

    assert old.exists()
    assert repo_cache.load_ref_map() == {"main": H2, "v1": H1}


def test_same_mapping_only_touches_access(cache):
    repo_cache = cache.for_source(parse_source("user/repo"))
    repo_cache.update("main", H1)
    archive = _seed_archive(repo_cache, H1)
    repo_cache.access_log_path.write_text(json.dumps({"main": "2000-01-01T00:00:00Z"}))

    repo_cache.update("main", H1)

    assert archive.exists()
    assert repo_cache.load_access_log()["main"] != "2000-01-01T00:00:00Z"


def test_corrupt_map_reads_as_empty(cache):
    repo_cache = cache.for_source(parse_source("user/repo"))
    repo_cache.path.mkdir(parents=True)
    repo_cache.ref_map_path.write_text("{not json")

    assert repo_cache.get_commit("main") is None
    repo_cache.update("main", H1)
    assert repo_cache.get_commit("main") == H1


def test_list_repos(cache):
    cache.for_source(parse_source("user/repo")).update("HEAD", H1)
    cache.for_source(parse_source("gitlab:group/project")).update("HEAD", H2)
    cache.for_source(parse_source("user/touched-only")).touch("HEAD")

    assert cache.list_repos() == ["github/user/repo", "gitlab/group/project"]


def test_list_repos_by_recency(cache):
    old = cache.for_source(parse_source("user/old"))
    new = cache.for_source(parse_source("user/new"))
    old.path.mkdir(parents=True)
    new.path.mkdir(parents=True)
    old.access_log_path.write_text(json.dumps({"HEAD": "2024-01-01T00:00:00Z"}))
    new.access_log_path.write_text(json.dumps({"HEAD": "2023-01-01T00:00:00Z", "dev": "2025-06-01T12:00:00Z"}))

    assert cache.list_repos_by_recency() == ["github/user/new", "github/user/old"]


def test_listing_missing_root(tmp_path):
    from repo_degit.cache import ReferenceCache

    cache = ReferenceCache(tmp_path / "nope")
    assert cache.list_repos() == []
    assert cache.list_repos_by_recency() == []
