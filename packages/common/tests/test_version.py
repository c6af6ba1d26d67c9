"""Test common package basics."""

import quarry_common


def test_version():
    """Test that version is defined."""
    assert hasattr(quarry_common, "__version__")
    assert isinstance(quarry_common.__version__, str)
    assert quarry_common.__version__ == "0.1.0"
