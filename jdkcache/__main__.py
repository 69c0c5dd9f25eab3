"""
Entry point for running jdkcache as a module.

Usage: python -m jdkcache [command] [options]
"""

from jdkcache.cli.parser import main

if __name__ == "__main__":
    main()
