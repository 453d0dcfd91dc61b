"""AWS Duplicator main entry point."""

from aws_duplicator.app import sync_main

if __name__ == "__main__":
    sync_main()
