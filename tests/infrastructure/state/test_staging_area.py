from __future__ import annotations

from pathlib import Path

from sandbox_orchestrator.infrastructure.state.staging import StagingArea


def test_create_makes_prefixed_untracked_directory(staging_root: Path) -> None:
    area = StagingArea(root=staging_root)

    path = area.create("demo")

    assert path.is_dir()
    assert path.parent == staging_root.resolve()
    assert path.name.startswith("sandbox-demo-")
    assert area.get("demo") is None
    assert area.tracked() == {}


def test_release_ignores_directories_that_were_not_adopted(staging_root: Path) -> None:
    area = StagingArea(root=staging_root)
    in_flight = area.create("demo")

    assert area.release("demo") == []
    assert in_flight.is_dir()


def test_each_attempt_gets_a_fresh_directory(staging_root: Path) -> None:
    area = StagingArea(root=staging_root)

    first = area.create("demo")
    second = area.create("demo")

    assert first != second


def test_release_deletes_every_adopted_directory(staging_root: Path) -> None:
    area = StagingArea(root=staging_root)
    first = area.create("demo")
    second = area.create("demo")
    (first / "file.txt").write_text("x", encoding="utf-8")
    area.adopt("demo", first)
    area.adopt("demo", second)

    assert area.get("demo") == second
    assert area.release("demo") == [first, second]
    assert not first.exists()
    assert not second.exists()
    assert area.get("demo") is None
    assert area.release("demo") == []


def test_discard_deletes_failed_attempt_only(staging_root: Path) -> None:
    area = StagingArea(root=staging_root)
    adopted = area.create("demo")
    area.adopt("demo", adopted)
    failed = area.create("demo")

    area.discard("demo", failed)

    assert not failed.exists()
    assert adopted.is_dir()
    assert area.tracked() == {"demo": [adopted]}


def test_release_all_deletes_everything(staging_root: Path) -> None:
    area = StagingArea(root=staging_root)
    paths = [area.create(name) for name in ("a", "b")]
    for name, path in zip(("a", "b"), paths):
        area.adopt(name, path)

    released = area.release_all()

    assert sorted(released) == ["a", "b"]
    assert all(not path.exists() for path in paths)
    assert area.tracked() == {}


def test_release_tolerates_already_deleted_directory(staging_root: Path) -> None:
    area = StagingArea(root=staging_root)
    path = area.create("demo")
    area.adopt("demo", path)
    path.rmdir()

    assert area.release("demo") == [path]
