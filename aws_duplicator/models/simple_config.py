"""Simple YAML configuration for AWS Duplicator."""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv


class SimpleConfig:
    """Simple configuration class using YAML."""

    def __init__(self, **kwargs):
        """Initialize configuration with default values."""
        # AWS Configuration
        self.aws_access_key_id: str = kwargs.get("aws_access_key_id", "YOUR_ACCESS_KEY_ID")
        self.aws_secret_access_key: str = kwargs.get("aws_secret_access_key", "YOUR_SECRET_ACCESS_KEY")
        self.aws_region: str = kwargs.get("aws_region", "us-east-1")
        self.s3_bucket: str = kwargs.get("s3_bucket", "your-bucket-name")
        self.s3_prefix: str = kwargs.get("s3_prefix", "")

        # S3-compatible endpoint (e.g. https://storage.googleapis.com), None for AWS
        self.endpoint_url: Optional[str] = kwargs.get("endpoint_url") or None

        # File to upload and duplicate
        image_file_data = kwargs.get("image_file")
        self.image_file: Optional[Path] = Path(image_file_data) if image_file_data else None

        self.log_level: str = kwargs.get("log_level", "INFO")

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "SimpleConfig":
        """Load configuration from YAML file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env(cls) -> "SimpleConfig":
        """Build configuration from environment variables (and a .env file if present)."""
        load_dotenv(override=True)

        config_kwargs = {
            "aws_access_key_id": os.environ.get("AWS_ACCESS_KEY_ID", ""),
            "aws_secret_access_key": os.environ.get("AWS_SECRET_ACCESS_KEY", ""),
            "aws_region": os.environ.get("AWS_REGION", "us-east-1"),
            "s3_bucket": os.environ.get("S3_BUCKET", ""),
            "s3_prefix": os.environ.get("S3_PREFIX", ""),
            "endpoint_url": os.environ.get("S3_ENDPOINT_URL"),
            "image_file": os.environ.get("IMAGE_FILE"),
            "log_level": os.environ.get("LOG_LEVEL", "INFO"),
        }
        return cls(**config_kwargs)

    def save_to_yaml(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, indent=2)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "aws_access_key_id": self.aws_access_key_id,
            "aws_secret_access_key": self.aws_secret_access_key,
            "aws_region": self.aws_region,
            "s3_bucket": self.s3_bucket,
            "s3_prefix": self.s3_prefix,
            "endpoint_url": self.endpoint_url,
            "image_file": str(self.image_file) if self.image_file else None,
            "log_level": self.log_level,
        }


# Default configuration path
DEFAULT_CONFIG_PATH = Path.home() / "aws-duplicator-config.yaml"


def load_config(config_path: Path = DEFAULT_CONFIG_PATH) -> SimpleConfig:
    """Load configuration from YAML file or create default."""
    if config_path.exists():
        return SimpleConfig.load_from_yaml(config_path)
    # Create a template configuration
    config = SimpleConfig()
    config.save_to_yaml(config_path)
    print(f"Template configuration created at: {config_path}")
    print("Please edit the YAML configuration file with your AWS credentials and settings.")
    return config
