"""
Unit tests for include/exclude filtering and folder helpers.
"""

from vaultindex.core.path_filter import (
    PathFilter,
    ancestor_folders,
    folder_of,
    folder_paths_to_include_patterns,
    include_patterns_to_folder_paths,
    is_under_folder,
    list_folder_paths,
)


class TestPathFilter:
    def test_empty_include_selects_everything(self):
        path_filter = PathFilter()

        assert path_filter.matches("a.md")
        assert path_filter.matches("deep/nested/note.md")

    def test_root_pattern_is_anchored(self):
        path_filter = PathFilter(include_patterns=["*.md"])

        assert path_filter.matches("a.md")
        assert not path_filter.matches("notes/a.md")

    def test_double_star_matches_any_depth(self):
        path_filter = PathFilter(include_patterns=["**/*.md"])

        assert path_filter.matches("a.md")
        assert path_filter.matches("notes/daily/a.md")

    def test_folder_name_matches_everything_beneath(self):
        path_filter = PathFilter(include_patterns=["notes"])

        assert path_filter.matches("notes/a.md")
        assert path_filter.matches("notes/daily/b.md")
        assert not path_filter.matches("projects/notes.md")
        assert not path_filter.matches("other/notes/a.md")

    def test_exclude_wins_over_include(self):
        path_filter = PathFilter(
            include_patterns=["notes/**"], exclude_patterns=["notes/private/**"]
        )

        assert path_filter.matches("notes/public.md")
        assert not path_filter.matches("notes/private/secret.md")

    def test_exclude_only(self):
        path_filter = PathFilter(exclude_patterns=[".obsidian/**", "templates"])

        assert path_filter.matches("notes/a.md")
        assert not path_filter.matches(".obsidian/workspace.md")
        assert not path_filter.matches("templates/daily.md")

    def test_blank_patterns_are_ignored(self):
        path_filter = PathFilter(include_patterns=["", "  "])

        assert path_filter.matches("anything.md")

    def test_filter_preserves_order(self):
        path_filter = PathFilter(include_patterns=["b/**", "a/**"])

        assert path_filter.filter(["a/1.md", "c/2.md", "b/3.md"]) == ["a/1.md", "b/3.md"]


class TestFolderHelpers:
    def test_folder_of(self):
        assert folder_of("a.md") == ""
        assert folder_of("notes/a.md") == "notes"
        assert folder_of("notes/daily/a.md") == "notes/daily"

    def test_ancestor_folders(self):
        assert ancestor_folders("a/b/c") == ["a/b/c", "a/b", "a", ""]
        assert ancestor_folders("") == [""]
        assert ancestor_folders("/a/") == ["a", ""]

    def test_is_under_folder(self):
        assert is_under_folder("notes/a.md", "notes")
        assert is_under_folder("notes/daily/a.md", "notes")
        assert not is_under_folder("notesextra/a.md", "notes")
        assert is_under_folder("anything.md", "")

    def test_list_folder_paths(self):
        paths = ["a.md", "notes/daily/x.md", "projects/y.md"]

        assert list_folder_paths(paths) == ["", "notes", "notes/daily", "projects"]

    def test_folder_paths_to_include_patterns(self):
        assert folder_paths_to_include_patterns(["notes"]) == ["notes/**/*.md", "notes/*.md"]
        assert folder_paths_to_include_patterns([""]) == ["**/*.md", "*.md"]

    def test_include_patterns_round_trip_folders(self):
        folders = ["", "notes", "projects/alpha"]

        patterns = folder_paths_to_include_patterns(folders)

        assert include_patterns_to_folder_paths(patterns) == folders

    def test_include_patterns_ignore_non_folder_patterns(self):
        assert include_patterns_to_folder_paths(["*.txt", "notes/**"]) == ["notes"]

    def test_generated_patterns_select_the_folder(self):
        path_filter = PathFilter(folder_paths_to_include_patterns(["notes"]))

        assert path_filter.matches("notes/a.md")
        assert path_filter.matches("notes/daily/b.md")
        assert not path_filter.matches("projects/c.md")
