"""Enable running relay-watch as a module: python -m relay_watch."""

from relay_watch.cli import main

if __name__ == "__main__":
    main()
