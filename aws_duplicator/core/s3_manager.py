"""Async S3 manager using aiobotocore."""

import asyncio
import base64
import contextlib
import hashlib
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles
from aiobotocore.config import AioConfig
from aiobotocore.session import get_session
from botocore.exceptions import ClientError

from aws_duplicator.models.copy_task import CopyTask
from aws_duplicator.models.simple_config import SimpleConfig

logger = logging.getLogger(__name__)


class S3Manager:
    """Async S3 manager with upload, server-side copy and existence checking."""

    def __init__(self, config: SimpleConfig, max_pool_connections: int = 100):
        """Initialize S3 manager with configuration."""
        self.config = config
        self._exit_stack = contextlib.AsyncExitStack()
        self._session = get_session()
        self._s3_client = None
        self._client_lock = asyncio.Lock()
        self._client_config = AioConfig(max_pool_connections=max_pool_connections)

    def _client_kwargs(self) -> Dict[str, Any]:
        """Arguments for ``create_client``."""
        kwargs = {
            "aws_access_key_id": self.config.aws_access_key_id,
            "aws_secret_access_key": self.config.aws_secret_access_key,
            "region_name": self.config.aws_region,
            "config": self._client_config,
        }
        if self.config.endpoint_url:
            kwargs["endpoint_url"] = self.config.endpoint_url
        return kwargs

    async def initialize(self) -> None:
        """Verify credentials and bucket access with a temporary client."""
        try:
            async with self._session.create_client("s3", **self._client_kwargs()) as test_client:
                await test_client.head_bucket(Bucket=self.config.s3_bucket)

            logger.info(f"S3Manager initialized for bucket: {self.config.s3_bucket}")

        except Exception as e:
            logger.error(f"Failed to initialize S3Manager: {e}")
            raise

    async def _get_or_create_client(self):
        """Get or create the shared S3 client using the AsyncExitStack pattern."""
        async with self._client_lock:
            if not self._exit_stack:
                self._exit_stack = contextlib.AsyncExitStack()
            if not self._s3_client:
                self._s3_client = await self._exit_stack.enter_async_context(
                    self._session.create_client("s3", **self._client_kwargs())
                )
            return self._s3_client

    async def close(self) -> None:
        """Close the S3 manager and cleanup resources."""
        if self._s3_client:
            await self._s3_client.close()
            self._s3_client = None
        if self._exit_stack:
            await self._exit_stack.aclose()
            self._exit_stack = None
        logger.debug("S3Manager closed")

    async def upload_file(self, local_path: Path, s3_key: str) -> bool:
        """Upload file to S3 with MD5 checksum verification.

        Args:
            local_path: Path to local file
            s3_key: S3 object key

        Returns:
            True if upload successful, False otherwise
        """
        try:
            if not local_path.exists():
                logger.error(f"File not found: {local_path}")
                return False

            md5_hash = await self._calculate_md5(local_path)
            if not md5_hash:
                logger.error(f"Failed to calculate MD5 for: {local_path}")
                return False

            full_s3_key = self._build_s3_key(s3_key)
            client = await self._get_or_create_client()

            async with aiofiles.open(local_path, "rb") as f:
                body = await f.read()

            await client.put_object(
                Bucket=self.config.s3_bucket,
                Key=full_s3_key,
                Body=body,
                Metadata=self._prepare_metadata(local_path, md5_hash),
            )

            # Verify upload by checking MD5
            if await self.check_exists(s3_key, md5_hash):
                logger.info(f"Upload successful: {local_path} -> s3://{self.config.s3_bucket}/{full_s3_key}")
                return True
            logger.error(f"Upload verification failed for: {local_path}")
            return False

        except Exception as e:
            logger.error(f"Upload failed for {local_path}: {e}")
            return False

    async def copy_object(self, task: CopyTask) -> bool:
        """Perform one server-side copy.

        Args:
            task: Source and destination of the copy

        Returns:
            True if the copy succeeded, False otherwise
        """
        source_key = self._build_s3_key(task.source_key)
        dest_key = self._build_s3_key(task.dest_key)

        try:
            client = await self._get_or_create_client()
            await client.copy_object(
                CopySource={"Bucket": task.source_bucket, "Key": source_key},
                Bucket=task.dest_bucket,
                Key=dest_key,
            )
            logger.debug(f"Copied s3://{task.source_bucket}/{source_key} -> s3://{task.dest_bucket}/{dest_key}")
            return True

        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.warning(f"Copy to {dest_key} rejected ({code}): {e}")
            return False
        except Exception as e:
            logger.warning(f"Unexpected error copying to {dest_key}: {e}")
            return False

    async def check_exists(self, s3_key: str, expected_md5: Optional[str] = None) -> bool:
        """Check if object exists in S3 with optional MD5 verification.

        Args:
            s3_key: S3 object key
            expected_md5: Optional MD5 hash to verify against

        Returns:
            True if object exists (and MD5 matches if provided), False otherwise
        """
        try:
            full_s3_key = self._build_s3_key(s3_key)
            client = await self._get_or_create_client()

            response = await client.head_object(Bucket=self.config.s3_bucket, Key=full_s3_key)

            if expected_md5 is None:
                return True

            # Check MD5 in metadata
            stored_md5 = response.get("Metadata", {}).get("md5-checksum")
            if stored_md5:
                return stored_md5 == expected_md5
            etag = response.get("ETag", "").strip('"')
            if "-" not in etag:  # Simple upload, ETag is MD5
                return etag == expected_md5
            logger.warning(f"Cannot verify MD5 for multipart upload: {s3_key}")
            return True

        except ClientError as e:
            if e.response["Error"]["Code"] == "404":
                return False
            logger.error(f"Error checking S3 object existence: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error checking S3 object: {e}")
            return False

    async def _calculate_md5(self, file_path: Path) -> Optional[str]:
        """Calculate MD5 hash of a file using aiofiles.

        Args:
            file_path: Path to file

        Returns:
            MD5 hash as hex string, or None if error
        """
        try:
            hasher = hashlib.md5()
            async with aiofiles.open(file_path, "rb") as f:
                while chunk := await f.read(8192):
                    hasher.update(chunk)
            return hasher.hexdigest()

        except Exception as e:
            logger.error(f"Error calculating MD5 for {file_path}: {e}")
            return None

    def _build_s3_key(self, s3_key: str) -> str:
        """Build full S3 key with prefix."""
        if self.config.s3_prefix:
            return f"{self.config.s3_prefix.rstrip('/')}/{s3_key}"
        return s3_key

    def _encode_metadata_value(self, value: str) -> str:
        """Encode metadata value to be S3-safe (ASCII only)."""
        try:
            value.encode("ascii")
            return value
        except UnicodeEncodeError:
            encoded = base64.b64encode(value.encode("utf-8")).decode("ascii")
            return f"base64:{encoded}"

    def _prepare_metadata(self, local_path: Path, md5_hash: str) -> Dict[str, str]:
        """Prepare metadata dictionary with safe encoding."""
        return {
            "md5-checksum": md5_hash,
            "original-path": self._encode_metadata_value(str(local_path)),
            "file-size": str(local_path.stat().st_size),
        }
