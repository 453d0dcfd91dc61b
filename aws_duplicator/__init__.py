"""AWS Duplicator - fan a single S3 object out into many copies with a bounded worker pool."""

__version__ = "0.1.0"
__author__ = "AWS Duplicator Team"
__description__ = "Duplicate one S3 object into many destination objects using concurrent copiers with naive retry"

# Simple imports only - complex modules imported on demand
__all__ = []
