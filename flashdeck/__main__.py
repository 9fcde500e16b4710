"""
Entry point for running flashdeck as a module.

Usage:
    python -m flashdeck study
    python -m flashdeck add "The train was late." "火車誤點了。"
    python -m flashdeck --help
"""
from .cli import main

if __name__ == "__main__":
    main()
