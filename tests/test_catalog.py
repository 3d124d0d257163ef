"""Tests for the cleanable directory catalog."""

import os

from diskdive.catalog import CATEGORIES, is_cleanable_dir


class TestCatalog:
    def test_artifact_names_anywhere(self):
        assert is_cleanable_dir("/work/project/node_modules")
        assert is_cleanable_dir("/work/project/__pycache__/")
        assert not is_cleanable_dir("/work/project/src")

    def test_known_cache_paths(self):
        assert is_cleanable_dir(os.path.expanduser("~/.cache"))
        assert not is_cleanable_dir(os.path.expanduser("~/.cache-not"))

    def test_empty_path(self):
        assert not is_cleanable_dir("")

    def test_ids_match_keys(self):
        for key, category in CATEGORIES.items():
            assert category.id == key
