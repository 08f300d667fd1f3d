import logging
from datetime import UTC
from datetime import datetime

import pytest

from utils import bytes_to_human_readable
from utils import coerce_to_bool
from utils import common_args
from utils import datestr2date
from utils import get_log_level
from utils import shorten_digest
from utils.errors import RegistryError
from utils.errors import UnexpectedStatusError


class TestLogLevel:
    def test_known_levels(self):
        assert get_log_level("DEBUG") == logging.DEBUG
        assert get_log_level("warn") == logging.WARNING

    def test_unknown_is_info(self):
        assert get_log_level("chatty") == logging.INFO


class TestCoerceToBool:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(True, True), (False, False), ("true", True), ("True", True), ("1", True), ("no", False), ("", False)],
    )
    def test_values(self, value, expected: bool):
        assert coerce_to_bool(value) is expected

    def test_rejects_other_types(self):
        with pytest.raises(TypeError):
            coerce_to_bool(None)


class TestCommonArgs:
    def test_environment_defaults(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("REGISTRY_URL", "https://env.registry.test")
        monkeypatch.setenv("REGISTRY_USERNAME", "env-user")
        monkeypatch.delenv("REGISTRY_PASSWORD", raising=False)
        monkeypatch.delenv("REGISTRY_VERIFY_TLS", raising=False)

        args = common_args("test").parse_args([])

        assert args.url == "https://env.registry.test"
        assert args.username == "env-user"
        assert args.password == ""
        assert coerce_to_bool(args.verify_tls) is False

    def test_arguments_override_environment(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("REGISTRY_URL", "https://env.registry.test")

        args = common_args("test").parse_args(["--url", "https://cli.registry.test", "--verify-tls", "true"])

        assert args.url == "https://cli.registry.test"
        assert coerce_to_bool(args.verify_tls) is True


class TestFormatting:
    @pytest.mark.parametrize(
        ("size", "expected"),
        [(0, "0 Bytes"), (512, "512.00 Bytes"), (1024, "1.00 KiB"), (1536, "1.50 KiB"), (5 * 1024**3, "5.00 GiB")],
    )
    def test_bytes_to_human_readable(self, size: int, expected: str):
        assert bytes_to_human_readable(size) == expected

    def test_negative_size(self):
        assert bytes_to_human_readable(-1) == "Invalid size"

    def test_shorten_digest(self):
        digest = "sha256:0123456789abcdef0123456789abcdef"
        assert shorten_digest(digest) == "sha256:0123456789ab..."
        assert shorten_digest("md5:0123456789abcdef") == "md5:01234567..."
        assert shorten_digest("") == "-"

    def test_datestr2date(self):
        assert datestr2date("2024-05-01T10:00:00Z") == datetime(2024, 5, 1, 10, 0, 0, tzinfo=UTC)


class TestErrors:
    def test_unexpected_status_message(self):
        error = UnexpectedStatusError("get tags", 404, "NAME_UNKNOWN")

        assert isinstance(error, RegistryError)
        assert str(error) == "failed to get tags: 404 - NAME_UNKNOWN"
