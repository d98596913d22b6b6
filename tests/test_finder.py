from pathlib import Path

import pytest

from skm.finder import ProjectScanner, detect_project_type, should_ignore
from skm.models import ProjectType


def _mkdirs(root: Path, *relative: str) -> None:
    for rel in relative:
        (root / rel).mkdir(parents=True, exist_ok=True)


def test_finds_projects_with_specify_or_specs(tmp_path):
    _mkdirs(tmp_path, "a/.specify", "b/specs", "c/src", "d/docs")
    found = set(ProjectScanner(tmp_path).find_projects())
    assert found == {tmp_path / "a", tmp_path / "b"}


def test_project_with_both_directories_listed_once(tmp_path):
    _mkdirs(tmp_path, "both/.specify", "both/specs")
    found = ProjectScanner(tmp_path).find_projects()
    assert found == [tmp_path / "both"]


def test_specs_inside_specify_is_skipped(tmp_path):
    _mkdirs(tmp_path, "p/.specify/specs", "q/.specify/nested/specs")
    found = set(ProjectScanner(tmp_path).find_projects())
    assert found == {tmp_path / "p", tmp_path / "q"}


def test_specify_dirs_under_specify_subfolder_skipped(tmp_path):
    _mkdirs(tmp_path, "r/.specify/sub/.specify")
    found = ProjectScanner(tmp_path).find_projects()
    assert found == [tmp_path / "r"]


def test_depth_limit(tmp_path):
    _mkdirs(tmp_path, "x/y/z/proj/.specify")
    scanner = ProjectScanner(tmp_path, max_depth=4)
    assert scanner.find_projects() == []
    assert scanner.with_max_depth(5).find_projects() == [tmp_path / "x/y/z/proj"]


def test_default_depth_is_five(tmp_path):
    _mkdirs(tmp_path, "x/y/z/proj/.specify", "x/y/z/w/deep/.specify")
    assert ProjectScanner(tmp_path).find_projects() == [tmp_path / "x/y/z/proj"]


def test_files_named_specs_are_not_projects(tmp_path):
    (tmp_path / "f").mkdir()
    (tmp_path / "f" / "specs").write_text("not a directory")
    assert ProjectScanner(tmp_path).find_projects() == []


def test_missing_root_yields_nothing(tmp_path):
    assert ProjectScanner(tmp_path / "absent").find_projects() == []


def test_builder_copies_leave_original_unchanged(tmp_path):
    scanner = ProjectScanner(tmp_path, max_depth=2)
    deeper = scanner.with_max_depth(9)
    patterned = scanner.with_pattern("*/specs")
    assert scanner.max_depth == 2
    assert deeper.max_depth == 9
    assert patterned.glob_pattern == "*/specs"
    assert scanner.glob_pattern == "*/{.specify,specs}"


def test_root_accepts_strings(tmp_path):
    _mkdirs(tmp_path, "a/.specify")
    scanner = ProjectScanner(str(tmp_path))
    assert scanner.root == tmp_path
    assert scanner.find_projects() == [tmp_path / "a"]


@pytest.mark.parametrize(
    "marker, expected",
    [
        ("Cargo.toml", ProjectType.RUST),
        ("package.json", ProjectType.NODE),
        ("pyproject.toml", ProjectType.PYTHON),
        ("setup.py", ProjectType.PYTHON),
        ("go.mod", ProjectType.GO),
    ],
)
def test_detect_project_type_from_marker_file(tmp_path, marker, expected):
    (tmp_path / marker).write_text("")
    assert detect_project_type(tmp_path) == expected


@pytest.mark.parametrize("directory", ["src", "lib"])
def test_generic_source_directory(tmp_path, directory):
    (tmp_path / directory).mkdir()
    assert detect_project_type(tmp_path) == ProjectType.GENERIC


def test_rust_marker_takes_precedence(tmp_path):
    for marker in ("Cargo.toml", "package.json", "go.mod"):
        (tmp_path / marker).write_text("")
    assert detect_project_type(tmp_path) == ProjectType.RUST


def test_unknown_project_type(tmp_path):
    assert detect_project_type(tmp_path) == ProjectType.UNKNOWN


@pytest.mark.parametrize(
    "name", ["node_modules", "target", ".git", "dist", "build", "__pycache__"]
)
def test_ignored_directories(name):
    assert should_ignore(Path("/work/project") / name) is True


@pytest.mark.parametrize("name", ["src", "specs", "builds", "node_modules_old"])
def test_not_ignored_directories(name):
    assert should_ignore(Path("/work/project") / name) is False