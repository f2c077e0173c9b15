"""Main entry point for the shelfpace package."""

from shelfpace.tracker.cli import main

if __name__ == "__main__":
    main()
