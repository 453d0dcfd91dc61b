"""Tests for copy task descriptors."""

import dataclasses

import pytest

from aws_duplicator.models.copy_task import NUM_FILES, CopyTask, build_copy_tasks, build_name


def test_build_name():
    assert build_name(0, "cat.jpg") == "0-cat.jpg"
    assert build_name(42, "cat.jpg") == "42-cat.jpg"


def test_copy_task_is_immutable():
    task = CopyTask("src-bucket", "0-cat.jpg", "dst-bucket", "1-cat.jpg")

    with pytest.raises(dataclasses.FrozenInstanceError):
        task.dest_key = "other"


def test_copy_task_value_equality():
    """Tasks compare by field values only."""
    first = CopyTask("b", "0-cat.jpg", "b", "1-cat.jpg")
    second = CopyTask("b", "0-cat.jpg", "b", "1-cat.jpg")

    assert first == second
    assert len({first, second}) == 1
    assert str(first) == "s3://b/0-cat.jpg -> s3://b/1-cat.jpg"


def test_build_copy_tasks_default_count():
    """The original plus its copies add up to NUM_FILES objects."""
    tasks = build_copy_tasks("bucket", "cat.jpg")

    assert len(tasks) == NUM_FILES - 1
    assert tasks[0] == CopyTask("bucket", "0-cat.jpg", "bucket", "1-cat.jpg")
    assert tasks[-1].dest_key == f"{NUM_FILES - 1}-cat.jpg"
    assert {t.source_key for t in tasks} == {"0-cat.jpg"}


def test_build_copy_tasks_order():
    tasks = build_copy_tasks("bucket", "cat.jpg", 4)

    assert [t.dest_key for t in tasks] == ["1-cat.jpg", "2-cat.jpg", "3-cat.jpg"]


@pytest.mark.parametrize("num_files", [0, 1])
def test_build_copy_tasks_nothing_to_copy(num_files):
    assert build_copy_tasks("bucket", "cat.jpg", num_files) == []
