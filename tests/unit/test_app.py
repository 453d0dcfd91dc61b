"""Tests for the application glue: setup, fan-out and exit codes."""

import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from aws_duplicator.app import (
    EXIT_COPY_FAILURES,
    EXIT_OK,
    EXIT_SETUP_ERROR,
    DuplicatorApp,
    SetupError,
    build_parser,
    main,
    resolve_config,
)
from aws_duplicator.models.simple_config import SimpleConfig


@pytest.fixture
def image_file():
    """Create a temporary image file."""
    with tempfile.TemporaryDirectory() as temp_dir:
        path = Path(temp_dir) / "cat.jpg"
        path.write_bytes(b"\xff\xd8\xff")
        yield path


@pytest.fixture
def test_config(image_file):
    return SimpleConfig(
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        s3_bucket="test-bucket",
        image_file=str(image_file),
    )


@pytest.fixture
def mock_s3_manager():
    """Create a properly mocked S3Manager."""
    mock = AsyncMock()
    mock.upload_file.return_value = True
    mock.copy_object.return_value = True
    return mock


class TestDuplicatorApp:
    """Test the upload-then-copy flow."""

    @pytest.mark.asyncio
    async def test_run_success(self, test_config, mock_s3_manager, image_file):
        app = DuplicatorApp(test_config, mock_s3_manager)

        failed = await app.run(image_file, num_files=6)

        assert failed == []
        mock_s3_manager.initialize.assert_awaited_once()
        mock_s3_manager.upload_file.assert_awaited_once_with(image_file, "0-cat.jpg")
        assert mock_s3_manager.copy_object.await_count == 5
        copied = sorted(call.args[0].dest_key for call in mock_s3_manager.copy_object.await_args_list)
        assert copied == ["1-cat.jpg", "2-cat.jpg", "3-cat.jpg", "4-cat.jpg", "5-cat.jpg"]
        mock_s3_manager.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_reports_failed_copies(self, test_config, mock_s3_manager, image_file, capsys):
        async def flaky_copy(task):
            return task.dest_key != "2-cat.jpg"

        mock_s3_manager.copy_object.side_effect = flaky_copy
        app = DuplicatorApp(test_config, mock_s3_manager)

        failed = await app.run(image_file, num_files=4)

        assert failed == ["2-cat.jpg"]
        assert "Could not copy to 2-cat.jpg" in capsys.readouterr().out
        # 2 successful copies plus 3 attempts for the failing one
        assert mock_s3_manager.copy_object.await_count == 5

    @pytest.mark.asyncio
    async def test_missing_image_file(self, test_config, mock_s3_manager):
        app = DuplicatorApp(test_config, mock_s3_manager)

        with pytest.raises(SetupError):
            await app.run(Path("/nonexistent/cat.jpg"))

        mock_s3_manager.initialize.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_initialize_failure_is_setup_error(self, test_config, mock_s3_manager, image_file):
        mock_s3_manager.initialize.side_effect = RuntimeError("bad credentials")
        app = DuplicatorApp(test_config, mock_s3_manager)

        with pytest.raises(SetupError):
            await app.run(image_file)

        mock_s3_manager.copy_object.assert_not_awaited()
        mock_s3_manager.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_upload_failure_stops_before_copying(self, test_config, mock_s3_manager, image_file):
        mock_s3_manager.upload_file.return_value = False
        app = DuplicatorApp(test_config, mock_s3_manager)

        with pytest.raises(SetupError):
            await app.run(image_file)

        mock_s3_manager.copy_object.assert_not_awaited()


class TestCommandLine:
    """Test argument parsing and exit codes."""

    def test_overrides(self, test_config):
        args = build_parser().parse_args(["--bucket", "other-bucket", "--image-file", "/tmp/dog.png"])

        with patch("aws_duplicator.app.load_config", return_value=test_config):
            config = resolve_config(args)

        assert config.s3_bucket == "other-bucket"
        assert config.image_file == Path("/tmp/dog.png")

    def test_env_flag_reads_environment(self, test_config):
        args = build_parser().parse_args(["--env"])

        with patch("aws_duplicator.app.SimpleConfig.from_env", return_value=test_config) as from_env:
            assert resolve_config(args) is test_config

        from_env.assert_called_once()

    @pytest.mark.asyncio
    async def test_main_exit_codes(self, test_config):
        with patch("aws_duplicator.app.load_config", return_value=test_config), patch(
            "aws_duplicator.app.DuplicatorApp.run", new_callable=AsyncMock
        ) as run:
            run.return_value = []
            assert await main([]) == EXIT_OK

            run.return_value = ["3-cat.jpg"]
            assert await main([]) == EXIT_COPY_FAILURES

            run.side_effect = SetupError("Unable to upload initial file to bucket")
            assert await main([]) == EXIT_SETUP_ERROR

    @pytest.mark.asyncio
    async def test_main_without_image_file(self):
        with patch("aws_duplicator.app.load_config", return_value=SimpleConfig()):
            assert await main([]) == EXIT_SETUP_ERROR
