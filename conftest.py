"""
pytest entry point.

Environment variables are set before anything imports ``filemanager`` so the
module-level app in ``filemanager.main`` never touches the working directory.
"""

import os
import tempfile

_scratch = tempfile.mkdtemp(prefix="filemanager-test-")
os.environ.setdefault("FILEMANAGER_UPLOAD_DIR", os.path.join(_scratch, "uploads"))
os.environ.setdefault("FILEMANAGER_DATA_DIR", _scratch)
os.environ.setdefault("FILEMANAGER_PERSIST", "false")
os.environ.setdefault("FILEMANAGER_LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from filemanager.core.config import Settings  # noqa: E402
from filemanager.services.context import build_context  # noqa: E402
from filemanager.services.files import FileService  # noqa: E402
from filemanager.storage.local import LocalStorage  # noqa: E402


@pytest.fixture
def settings(tmp_path):
    return Settings(
        upload_dir=str(tmp_path / "uploads"),
        data_dir=str(tmp_path / "data"),
        persist=False,
        log_level="WARNING",
    )


@pytest.fixture
def storage(settings):
    return LocalStorage(settings.upload_dir)


@pytest.fixture
def ctx(settings, storage):
    return build_context(settings, storage)


@pytest.fixture
def service(ctx):
    return FileService(ctx, ip="127.0.0.1", user_agent="pytest")


@pytest.fixture
def app(settings, storage):
    from filemanager.main import create_app

    return create_app(settings, storage)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
