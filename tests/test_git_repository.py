from __future__ import annotations

from pathlib import Path

import pytest
from conftest import Workspace, commit_files, git, init_repo

from pr_heatmap.adapters.git import repository as repository_mod
from pr_heatmap.adapters.git.repository import GitTimeout, open_repository
from pr_heatmap.domain.errors import BranchNotFound, FetchFailed, NoCommonAncestor, RepositoryNotFound


def test_open_rejects_missing_and_non_repo_paths(tmp_path: Path) -> None:
    with pytest.raises(RepositoryNotFound):
        open_repository(tmp_path / "missing")

    plain = tmp_path / "plain"
    plain.mkdir()
    with pytest.raises(RepositoryNotFound):
        open_repository(plain)


def test_open_from_subdirectory_uses_top_level(workspace: Workspace) -> None:
    repo = open_repository(workspace.upstream / "src")
    assert repo.path.resolve() == workspace.upstream.resolve()
    assert not repo.bare


def test_resolve_branch_local_then_base_remote(workspace: Workspace) -> None:
    tip = git(workspace.upstream, "rev-parse", "main")
    clone_path = workspace.fork("carol")
    git(clone_path, "branch", "-q", "-m", "main", "local-only")

    upstream = open_repository(workspace.upstream)
    assert upstream.resolve_branch("main") == tip
    with pytest.raises(BranchNotFound):
        upstream.resolve_branch("does-not-exist")

    # No local main any more, but origin/main still resolves.
    cloned = open_repository(clone_path)
    assert cloned.resolve_branch("main") == tip


def test_merge_base_and_unrelated_histories(workspace: Workspace) -> None:
    up = workspace.upstream
    root = git(up, "rev-parse", "HEAD")
    git(up, "checkout", "-q", "-b", "topic")
    topic = commit_files(up, {"a.txt": "alpha 2\n"})
    git(up, "checkout", "-q", "main")
    main = commit_files(up, {"b.txt": "bravo 2\n"})

    git(up, "checkout", "-q", "--orphan", "unrelated")
    git(up, "rm", "-rq", "--cached", ".")
    orphan = commit_files(up, {"z.txt": "zulu\n"}, "orphan root")
    git(up, "checkout", "-q", "-f", "main")

    repo = open_repository(up)
    assert repo.merge_base(main, topic) == root
    with pytest.raises(NoCommonAncestor):
        repo.merge_base(main, orphan)


def test_ensure_remote_branch_fetches_from_fork(workspace: Workspace) -> None:
    fork = workspace.fork("alice")
    git(fork, "checkout", "-q", "-b", "feature")
    head = commit_files(fork, {"a.txt": "changed by alice\n"})

    repo = open_repository(workspace.upstream, remote_url_template=workspace.remote_url_template)
    assert not repo.has_commit(head)

    got = repo.ensure_remote_branch("alice", "project", "feature", head, local_ref="refs/heads/pull-request-1")

    assert got == head
    assert repo.has_commit(head)
    assert git(workspace.upstream, "rev-parse", "pull-request-1") == head
    remotes = repo.remotes()
    assert remotes["pr-alice-project"] == str(fork)

    # Second call is served locally and registers nothing new.
    assert repo.ensure_remote_branch("alice", "project", "feature", head[:10]) == head
    assert repo.ensure_remote("alice", "project") == "pr-alice-project"
    assert repo.remotes() == remotes


def test_ensure_remote_branch_falls_back_to_commit_when_branch_moved(workspace: Workspace) -> None:
    fork = workspace.fork("dave")
    git(fork, "checkout", "-q", "-b", "feature")
    listed = commit_files(fork, {"a.txt": "v1\n"})
    git(fork, "branch", "-q", "keep", listed)
    git(fork, "reset", "-q", "--hard", "HEAD~1")
    commit_files(fork, {"b.txt": "force pushed\n"})

    repo = open_repository(workspace.upstream, remote_url_template=workspace.remote_url_template)
    # `listed` is only reachable from the fork's `keep` branch now.
    git(workspace.upstream, "config", "protocol.version", "2")
    try:
        got = repo.ensure_remote_branch("dave", "project", "feature", listed)
    except FetchFailed:
        pytest.skip("git server side does not allow fetching unadvertised commits")
    assert got == listed


def test_ensure_remote_branch_reports_fetch_failure(workspace: Workspace) -> None:
    repo = open_repository(workspace.upstream, remote_url_template=workspace.remote_url_template)
    missing = "f" * 40

    with pytest.raises(FetchFailed) as excinfo:
        repo.ensure_remote_branch("ghost", "project", "feature", missing)
    assert excinfo.value.reason.startswith("FetchFailed:")


def test_fetch_timeout_fails_without_a_second_attempt(workspace: Workspace, monkeypatch: pytest.MonkeyPatch) -> None:
    fetches: list[list[str]] = []
    real_run_git = repository_mod._run_git

    def hanging_fetch(repo: Path, args: list[str], *, timeout: float | None = None) -> str:
        if args[:1] == ["fetch"]:
            fetches.append(args)
            raise GitTimeout(f"git timed out after {timeout}s")
        return real_run_git(repo, args, timeout=timeout)

    monkeypatch.setattr(repository_mod, "_run_git", hanging_fetch)
    repo = open_repository(workspace.upstream, remote_url_template=workspace.remote_url_template, fetch_timeout=5)

    with pytest.raises(FetchFailed) as excinfo:
        repo.ensure_remote_branch("alice", "project", "feature", "e" * 40, local_ref="refs/heads/pull-request-7")
    assert len(fetches) == 1
    assert "Timed out" in excinfo.value.reason


def test_list_tree_and_worktree(workspace: Workspace) -> None:
    (workspace.upstream / "untracked.txt").write_text("new\n")
    (workspace.upstream / ".hidden").write_text("x\n")
    repo = open_repository(workspace.upstream)

    tracked = repo.list_tree("HEAD")
    assert tracked == {"a.txt", "b.txt", "src/c.py", "Cargo.lock", ".github/ci.yml"}

    on_disk = repo.list_worktree()
    assert on_disk == {"a.txt", "b.txt", "src/c.py", "Cargo.lock", "untracked.txt"}
    assert ".github/ci.yml" in repo.list_worktree(include_hidden=True)
    assert not any(p.startswith(".git/") for p in repo.list_worktree(include_hidden=True))


def test_bare_repository_has_no_worktree(tmp_path: Path) -> None:
    src = init_repo(tmp_path / "src")
    commit_files(src, {"a.txt": "a\n"})
    bare = tmp_path / "bare.git"
    git(tmp_path, "clone", "-q", "--bare", str(src), str(bare))

    repo = open_repository(bare)
    assert repo.bare
    assert repo.list_tree("HEAD") == {"a.txt"}
    with pytest.raises(RepositoryNotFound):
        repo.list_worktree()
