"""
tests/test_config.py — YAML Config, Quiz Seed & JWT Secret Validation
======================================================================
"""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from faithful_city.config import load_config
from faithful_city.database.models import QuizQuestion
from faithful_city.database.seed import STARTER_QUESTIONS, seed_quiz_questions

_YAML = """\
community_name: "Test City"
api_port: 8123
media_dir: "uploads"
media_public_url: "/api/media-files/"
"""


class TestLoadConfig:
    def test_reads_yaml(self, tmp_path, monkeypatch):
        monkeypatch.delenv("FAITHFUL_MEDIA_DIR", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text(_YAML, encoding="utf-8")

        cfg = load_config(path)

        assert cfg.community_name == "Test City"
        assert cfg.api_port == 8123
        assert cfg.media_dir == "uploads"
        assert cfg.media_public_url == "/api/media-files"
        assert cfg.max_upload_mb == 25

    def test_env_overrides_media_dir(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FAITHFUL_MEDIA_DIR", "/data/media")
        path = tmp_path / "config.yaml"
        path.write_text(_YAML, encoding="utf-8")

        assert load_config(path).media_dir == "/data/media"

    def test_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "elsewhere.yaml"
        path.write_text(_YAML, encoding="utf-8")
        monkeypatch.setenv("FAITHFUL_CONFIG", str(path))

        assert load_config().api_port == 8123

    def test_api_config_follows_environment(self, tmp_path, monkeypatch):
        from faithful_city.api.deps import get_config

        path = tmp_path / "elsewhere.yaml"
        path.write_text(_YAML, encoding="utf-8")
        monkeypatch.setenv("FAITHFUL_CONFIG", str(path))
        get_config.cache_clear()
        try:
            assert get_config().community_name == "Test City"
        finally:
            get_config.cache_clear()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.yaml.example"):
            load_config(tmp_path / "nope.yaml")

    def test_missing_key(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text('community_name: "Test City"\n', encoding="utf-8")
        with pytest.raises(KeyError):
            load_config(path)


class TestSeedQuizQuestions:
    def test_seeds_once(self, db_engine):
        assert seed_quiz_questions(db_engine) == len(STARTER_QUESTIONS)
        assert seed_quiz_questions(db_engine) == 0

        with Session(db_engine) as session:
            count = session.scalar(select(func.count()).select_from(QuizQuestion))
        assert count == len(STARTER_QUESTIONS)

    def test_starter_answers_are_among_options(self):
        for question, correct, options, difficulty, _ref in STARTER_QUESTIONS:
            assert correct in options, question
            assert difficulty in {"easy", "medium", "hard"}


class TestJWTSecretValidation:
    """_load_jwt_secret() rejects bad secrets and accepts good ones."""

    def _load(self) -> str:
        from faithful_city.api.deps import _load_jwt_secret

        return _load_jwt_secret()

    def test_rejects_missing_secret(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("JWT_SECRET", None)
            with pytest.raises(RuntimeError, match="not set"):
                self._load()

    def test_rejects_known_weak_default(self):
        with patch.dict(os.environ, {"JWT_SECRET": "faithful-dev-secret-change-me"}):
            with pytest.raises(RuntimeError, match="known weak default"):
                self._load()

    def test_rejects_short_secret(self):
        with patch.dict(os.environ, {"JWT_SECRET": "tooshort"}):
            with pytest.raises(RuntimeError, match="too short"):
                self._load()

    def test_accepts_strong_secret(self):
        with patch.dict(os.environ, {"JWT_SECRET": "a" * 64}):
            assert self._load() == "a" * 64
