"""Shared fixtures.

Real subprocesses are exercised with POSIX tools standing in for the
converters: ``cp`` succeeds and copies input to output, ``false`` fails.

  settings_factory — builds Settings rooted in tmp_path with chosen commands.
  make_client      — FastAPI TestClient for a given Settings.
"""
import pytest

from svg_service.settings import Settings

COPY = "cp {input} {output}"
FAIL = "false {input} {output}"


@pytest.fixture
def settings_factory(tmp_path):
    def _make(**overrides) -> Settings:
        values = dict(
            upload_dir=tmp_path / "uploads",
            converted_dir=tmp_path / "converted",
            static_dir=None,
            ghostscript_command=COPY,
            pdf2svg_command=COPY,
            inkscape_command="cp {input} {output}",
        )
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def make_client():
    from fastapi.testclient import TestClient
    from svg_service.webapi import create_app

    clients = []

    def _make(settings: Settings) -> TestClient:
        client = TestClient(create_app(settings))
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for c in clients:
        c.__exit__(None, None, None)


def dir_entries(path) -> list[str]:
    return sorted(p.name for p in path.iterdir()) if path.exists() else []
