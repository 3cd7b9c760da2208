"""pytest fixtures"""

import json
from unittest import mock

import pytest


@pytest.fixture
def labels_file(tmp_path):
    """Writes the given label definitions to a JSON file and returns its path."""

    def write(labels, name="labels.json"):
        path = tmp_path / name
        path.write_text(json.dumps(labels))
        return str(path)

    return write


@pytest.fixture
def github_client():
    """Replaces github.Github with a mock and returns the mocked client instance."""
    with mock.patch("label_all_the_things.github.Github") as github_cls:
        yield github_cls.return_value
