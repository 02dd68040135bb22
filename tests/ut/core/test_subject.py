"""被测 cookbook 识别测试"""

from __future__ import annotations

import json

import pytest

from kitchenmatrix.core.exceptions import ConfigError
from kitchenmatrix.core.subject import discover_name, resolve_subject


class TestDiscoverName:
    def test_metadata_rb(self, cookbook):
        assert discover_name(cookbook) == "demo"

    def test_metadata_json(self, tmp_path):
        (tmp_path / "metadata.json").write_text(json.dumps({"name": "jsonbook"}), encoding="utf-8")
        assert discover_name(tmp_path) == "jsonbook"

    def test_metadata_rb_without_name_uses_directory(self, tmp_path):
        root = tmp_path / "dirbook"
        root.mkdir()
        (root / "metadata.rb").write_text("version '1.0.0'\n", encoding="utf-8")
        assert discover_name(root) == "dirbook"

    def test_no_metadata(self, tmp_path):
        with pytest.raises(ConfigError, match="无法识别"):
            discover_name(tmp_path)


class TestResolveSubject:
    def test_solo_from_cwd(self, cookbook):
        subject = resolve_subject(None, cwd=cookbook)
        assert subject.name == "demo"
        assert subject.solo is True
        assert subject.test_root("test/integration") == cookbook / "test" / "integration"

    def test_named_from_cookbook_paths(self, tmp_path):
        (tmp_path / "books" / "nginx").mkdir(parents=True)
        subject = resolve_subject("nginx", cwd=tmp_path, cookbook_paths=[str(tmp_path / "books")])
        assert subject.directory == tmp_path / "books" / "nginx"
        assert subject.solo is False

    def test_named_matches_cwd(self, cookbook):
        subject = resolve_subject("demo", cwd=cookbook)
        assert subject.directory == cookbook
        assert subject.solo is False

    def test_named_not_found(self, tmp_path):
        with pytest.raises(ConfigError, match="找不到"):
            resolve_subject("ghost", cwd=tmp_path, cookbook_paths=[str(tmp_path)])
