"""AWS Duplicator application: upload one file, then fan it out with concurrent copiers."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from aws_duplicator.core.dispatcher import CopyDispatcher
from aws_duplicator.core.s3_manager import S3Manager
from aws_duplicator.models.copy_task import NUM_FILES, build_copy_tasks, build_name
from aws_duplicator.models.simple_config import DEFAULT_CONFIG_PATH, SimpleConfig, load_config

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_SETUP_ERROR = 1
EXIT_COPY_FAILURES = 2


class SetupError(Exception):
    """Raised when the run cannot start (missing file, bad credentials, failed upload)."""


class DuplicatorApp:
    """Uploads the source file once and duplicates it across the bucket."""

    def __init__(self, config: SimpleConfig, s3_manager: Optional[S3Manager] = None):
        """Initialize application.

        Args:
            config: Application configuration
            s3_manager: Optional S3 manager, created from config when omitted
        """
        self.config = config
        self.s3_manager = s3_manager or S3Manager(config)

    async def run(self, image_file: Path, num_files: int = NUM_FILES) -> List[str]:
        """Upload ``image_file`` as the original and copy it ``num_files - 1`` times.

        Args:
            image_file: Local file to duplicate
            num_files: Total object count including the original

        Returns:
            Destination keys that could not be copied

        Raises:
            SetupError: If the file is missing, the bucket is unreachable or the upload fails
        """
        if not image_file.is_file():
            raise SetupError(f"Error opening image file: {image_file}")

        try:
            await self.s3_manager.initialize()
            logger.info("✅ S3 Manager initialized")

            base_name = build_name(0, image_file.name)
            if not await self.s3_manager.upload_file(image_file, base_name):
                raise SetupError(f"Unable to upload initial file to bucket: {self.config.s3_bucket}")
            logger.info(f"✅ Uploaded original as {base_name}")

            tasks = build_copy_tasks(self.config.s3_bucket, image_file.name, num_files)
            dispatcher = CopyDispatcher(self.s3_manager.copy_object)
            failed = await dispatcher.run(tasks)

            logger.info(f"📊 Copy Status: {dispatcher.get_statistics()}")
            for dest_key in failed:
                print(f"Could not copy to {dest_key}")
            return failed

        except SetupError:
            raise
        except Exception as e:
            raise SetupError(f"Setup failed: {e}") from e
        finally:
            await self.s3_manager.close()
            logger.info("✅ S3 Manager closed")


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="aws-duplicator",
        description="Upload a file to S3 and duplicate it many times using concurrent copiers.",
    )
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to the YAML configuration file.")
    parser.add_argument("--env", action="store_true", help="Read settings from environment variables / .env instead.")
    parser.add_argument("--image-file", type=Path, help="The path to the image file to duplicate.")
    parser.add_argument("--bucket", help="The bucket in which to generate files.")
    return parser


def resolve_config(args: argparse.Namespace) -> SimpleConfig:
    """Load configuration and apply command line overrides."""
    config = SimpleConfig.from_env() if args.env else load_config(args.config)
    if args.bucket:
        config.s3_bucket = args.bucket
    if args.image_file:
        config.image_file = args.image_file
    return config


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    config = resolve_config(args)

    logging.getLogger().setLevel(config.log_level)

    if not config.image_file:
        logger.error("No image file given; use --image-file or set image_file in the configuration")
        return EXIT_SETUP_ERROR

    app = DuplicatorApp(config)
    try:
        failed = await app.run(config.image_file)
    except SetupError as e:
        logger.error(str(e))
        return EXIT_SETUP_ERROR

    if failed:
        logger.warning(f"{len(failed)} copies failed")
        return EXIT_COPY_FAILURES
    logger.info("🚀 All copies completed")
    return EXIT_OK


def sync_main():
    """Synchronous main entry point for setuptools."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Application interrupted")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
