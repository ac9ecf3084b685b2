"""Tests for the user directory."""

import pytest

from notifier.config.exceptions import ConfigurationError
from notifier.notifications.directory import InMemoryUserDirectory, load_user_directory
from notifier.notifications.models import Recipient


class TestInMemoryUserDirectory:
    def test_resolve(self, directory):
        assert directory.resolve("u_alice").email == "alice@example.com"
        assert directory.resolve("u_nobody") is None

    def test_find_by_email_ignores_case(self, directory):
        assert directory.find_by_email(" ALICE@Example.com ").user_id == "u_alice"
        assert directory.find_by_email("carol@example.com") is None

    def test_add_and_remove(self):
        directory = InMemoryUserDirectory()
        directory.add(Recipient("u1", "one@example.com"))
        assert len(directory) == 1

        directory.remove("u1")
        directory.remove("u1")
        assert len(directory) == 0


class TestLoadUserDirectory:
    def test_loads_users(self, tmp_path):
        path = tmp_path / "users.yaml"
        path.write_text(
            "users:\n"
            "  - id: u_1001\n"
            "    email: alice@example.com\n"
            "    first_name: Alice\n"
            "  - id: 1002\n"
            "    email: ' bob@example.com '\n"
            "    display_name: Bobby\n"
        )

        directory = load_user_directory(str(path))

        assert len(directory) == 2
        assert directory.resolve("u_1001").first_name == "Alice"
        bob = directory.resolve("1002")
        assert bob.email == "bob@example.com"
        assert bob.name == "Bobby"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_user_directory(str(tmp_path / "missing.yaml"))

    def test_missing_users_list(self, tmp_path):
        path = tmp_path / "users.yaml"
        path.write_text("people: []\n")

        with pytest.raises(ConfigurationError, match="'users' list"):
            load_user_directory(str(path))

    def test_incomplete_entries(self, tmp_path):
        path = tmp_path / "users.yaml"
        path.write_text("users:\n  - id: u1\n  - email: x@example.com\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_user_directory(str(path))

        assert exc_info.value.errors == [
            "users[0]: 'id' and 'email' are required",
            "users[1]: 'id' and 'email' are required",
        ]

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "users.yaml"
        path.write_text("users: [\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_user_directory(str(path))
