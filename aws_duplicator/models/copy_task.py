"""Copy task descriptors handed to the dispatcher."""

from dataclasses import dataclass
from typing import List

# Total number of objects in the bucket after a run, including the uploaded original
NUM_FILES = 1000


@dataclass(frozen=True)
class CopyTask:
    """A request to duplicate one object from a source location to a destination location."""

    source_bucket: str
    source_key: str
    dest_bucket: str
    dest_key: str

    def __str__(self) -> str:
        return f"s3://{self.source_bucket}/{self.source_key} -> s3://{self.dest_bucket}/{self.dest_key}"


def build_name(prefix: int, name: str) -> str:
    """Build an object name by prefixing the base name with a number.

    Args:
        prefix: Numeric prefix (0 is the uploaded original)
        name: Base file name

    Returns:
        Object name such as ``"3-cat.jpg"``
    """
    return "-".join([str(prefix), name])


def build_copy_tasks(bucket: str, file_name: str, num_files: int = NUM_FILES) -> List[CopyTask]:
    """Build the copy tasks that fan the original object out inside one bucket.

    The original lives at ``0-<file_name>``; copies go to ``1-<file_name>``
    through ``<num_files - 1>-<file_name>``.

    Args:
        bucket: Bucket holding both the original and the copies
        file_name: Base name of the uploaded file
        num_files: Total object count including the original

    Returns:
        Copy tasks in ascending destination order
    """
    source_key = build_name(0, file_name)
    return [
        CopyTask(
            source_bucket=bucket,
            source_key=source_key,
            dest_bucket=bucket,
            dest_key=build_name(i, file_name),
        )
        for i in range(1, num_files)
    ]
