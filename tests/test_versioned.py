"""Tests for the Versioned commit writer and history reader."""

import pytest

from gitkv import ConcurrencyError, Identity, NotFound, Versioned, memory_repo

AUTHOR = Identity("Ann", "ann@example.com")
COMMITTER = Identity("Bob", "bob@example.com")


def _set(versioned, name, data, message="test"):
    return versioned.write(
        lambda s: s.add(name, data),
        message=message,
        author=AUTHOR,
        committer=COMMITTER,
    )


def _remove(versioned, name):
    return versioned.write(
        lambda s: s.remove(name), message="rm", author=AUTHOR, committer=COMMITTER
    )


class TestVersionedBasic:
    def test_empty_branch(self):
        v = Versioned(memory_repo())
        assert v.tip is None
        assert v.current_branch == "main"

    def test_invalid_branch_name(self):
        with pytest.raises(ValueError, match="Invalid branch name"):
            Versioned(memory_repo(), branch="bad..name")

    def test_first_commit_has_no_parent(self):
        v = Versioned(memory_repo())
        commit_id = _set(v, b"k", b"v")
        assert v.tip == commit_id.encode("ascii")
        assert v.resolve(commit_id).parents == []

    def test_commit_links_parent(self):
        v = Versioned(memory_repo())
        first = _set(v, b"a", b"1")
        second = _set(v, b"b", b"2")
        assert v.resolve(second).parents == [first.encode("ascii")]

    def test_commit_metadata(self):
        v = Versioned(memory_repo())
        commit = v.resolve(_set(v, b"k", b"v", message="set 'k'"))
        assert commit.message == b"set 'k'"
        assert commit.author == b"Ann <ann@example.com>"
        assert commit.committer == b"Bob <bob@example.com>"
        assert commit.author_time == commit.commit_time

    def test_read(self):
        v = Versioned(memory_repo())
        commit_id = _set(v, b"k", b"v")
        commit = v.resolve(commit_id)
        assert v.read(commit, b"k") == b"v"
        assert v.read(commit, b"missing") is None

    def test_unchanged_tree_creates_no_commit(self):
        v = Versioned(memory_repo())
        _set(v, b"k", b"v")
        tip = v.tip
        assert _set(v, b"k", b"v") is None
        assert _remove(v, b"missing") is None
        assert v.tip == tip

    def test_no_commit_on_empty_branch(self):
        v = Versioned(memory_repo())
        assert _remove(v, b"k") is None
        assert v.tip is None

    def test_branches_are_independent(self):
        repo = memory_repo()
        main = Versioned(repo)
        dev = Versioned(repo, branch="dev")
        _set(main, b"k", b"main")
        assert dev.tip is None
        _set(dev, b"k", b"dev")
        assert main.read(main.resolve(main.tip.decode()), b"k") == b"main"


class TestVersionedResolve:
    def test_unknown_commit(self):
        v = Versioned(memory_repo())
        with pytest.raises(NotFound):
            v.resolve("0" * 40)

    def test_malformed_commit_id(self):
        v = Versioned(memory_repo())
        with pytest.raises(NotFound):
            v.resolve("not-a-sha")

    def test_tree_id_is_not_a_commit(self):
        v = Versioned(memory_repo())
        commit = v.resolve(_set(v, b"k", b"v"))
        with pytest.raises(NotFound):
            v.resolve(commit.tree)

    def test_accepts_bytes_and_uppercase(self):
        v = Versioned(memory_repo())
        commit_id = _set(v, b"k", b"v")
        assert v.resolve(commit_id.encode("ascii")).id == commit_id.encode("ascii")
        assert v.resolve(commit_id.upper()).id == commit_id.encode("ascii")


class TestVersionedConcurrency:
    def test_stale_staging_raises(self):
        v = Versioned(memory_repo())
        _set(v, b"a", b"1")
        stale = v.stage()
        stale.add(b"b", b"2")
        _set(v, b"c", b"3")
        with pytest.raises(ConcurrencyError):
            v.commit(stale, message="late", author=AUTHOR, committer=AUTHOR)

    def test_stale_staging_on_new_branch_raises(self):
        v = Versioned(memory_repo())
        stale = v.stage()
        stale.add(b"b", b"2")
        _set(v, b"a", b"1")
        with pytest.raises(ConcurrencyError):
            v.commit(stale, message="late", author=AUTHOR, committer=AUTHOR)

    def test_retry_restages_on_new_tip(self):
        repo = memory_repo()
        v = Versioned(repo)
        other = Versioned(repo)
        _set(v, b"a", b"1")
        calls = []

        def apply(staging):
            calls.append(staging.parent)
            if len(calls) == 1:
                # Another writer lands between staging and commit
                _set(other, b"c", b"3")
            staging.add(b"b", b"2")

        commit_id = v.write(
            apply, message="retry", author=AUTHOR, committer=AUTHOR, retries=2
        )
        assert len(calls) == 2
        commit = v.resolve(commit_id)
        assert v.read(commit, b"c") == b"3"
        assert v.read(commit, b"b") == b"2"

    def test_retries_exhausted(self):
        repo = memory_repo()
        v = Versioned(repo)
        other = Versioned(repo)
        _set(v, b"a", b"1")
        counter = iter(range(100))

        def apply(staging):
            _set(other, b"n", str(next(counter)).encode())
            staging.add(b"b", b"2")

        with pytest.raises(ConcurrencyError):
            v.write(apply, message="m", author=AUTHOR, committer=AUTHOR, retries=1)


class TestVersionedHistory:
    def test_history_filters_by_entry(self):
        v = Versioned(memory_repo())
        a1 = _set(v, b"a", b"1")
        _set(v, b"b", b"1")
        a2 = _set(v, b"a", b"2")
        history = [c.id.decode("ascii") for c in v.history(b"a")]
        assert history == [a2, a1]

    def test_history_includes_removal(self):
        v = Versioned(memory_repo())
        a1 = _set(v, b"a", b"1")
        removed = _remove(v, b"a")
        history = [c.id.decode("ascii") for c in v.history(b"a")]
        assert history == [removed, a1]

    def test_history_limit(self):
        v = Versioned(memory_repo())
        ids = [_set(v, b"a", str(i).encode()) for i in range(5)]
        history = [c.id.decode("ascii") for c in v.history(b"a", limit=2)]
        assert history == [ids[4], ids[3]]

    def test_history_unbounded(self):
        v = Versioned(memory_repo())
        for i in range(25):
            _set(v, b"a", str(i).encode())
        assert len(list(v.history(b"a", limit=None))) == 25

    def test_history_zero_limit(self):
        v = Versioned(memory_repo())
        _set(v, b"a", b"1")
        assert list(v.history(b"a", limit=0)) == []

    def test_history_empty_branch(self):
        v = Versioned(memory_repo())
        assert list(v.history(b"a")) == []

    def test_history_untouched_entry(self):
        v = Versioned(memory_repo())
        _set(v, b"a", b"1")
        assert list(v.history(b"b")) == []
