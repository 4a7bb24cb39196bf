import os
from pathlib import Path

import pytest


def pytest_collection_modifyitems(config: pytest.Config, items: list) -> None:
    if os.getenv("STEAMGUARD_INTEGRATION"):
        return
    mark_expr = getattr(config.option, "markexpr", "")
    if "integration" in mark_expr:
        return
    skip = pytest.mark.skip(reason="STEAMGUARD_INTEGRATION not set")
    for item in items:
        if item.get_closest_marker("integration"):
            item.add_marker(skip)


@pytest.fixture(scope="session")
def steam_credentials() -> tuple[Path, str]:
    mafile = os.getenv("STEAMGUARD_TEST_MAFILE")
    password = os.getenv("STEAMGUARD_TEST_PASSWORD")
    if not mafile or not password:
        pytest.skip("STEAMGUARD_TEST_MAFILE and STEAMGUARD_TEST_PASSWORD are needed for login tests")
    return Path(mafile), password
