"""CLI entry point for growthcast."""

from growthcast.cli.commands import app


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
