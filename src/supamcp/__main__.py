"""Allow ``python -m supamcp``."""

from supamcp.server import main

if __name__ == "__main__":
    main()
