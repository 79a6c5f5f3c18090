import pytest

from annotexport.config import Settings


@pytest.fixture
def settings(tmp_path):
    return Settings(export_dir=tmp_path / 'exports')
