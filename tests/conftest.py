import pytest

from hostbasics.config import Settings


@pytest.fixture
def settings():
    """Settings for offline tests: no hit counter, no retries, small pools."""
    return Settings(language="en", http_retries=0, max_workers=4, send_hit=False)
