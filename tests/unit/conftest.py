import pytest

ALGORITHM_MODULES = ("test_clustering", "test_false_negatives", "test_hypothesis")


def pytest_collection_modifyitems(items):
    """Apply unit marker to all tests in this directory, business_logic to algorithm tests."""
    for item in items:
        path = str(item.fspath)
        if "/unit/" in path:
            item.add_marker(pytest.mark.unit)
            if any(name in path for name in ALGORITHM_MODULES):
                item.add_marker(pytest.mark.business_logic)
