"""Form engine tests."""
