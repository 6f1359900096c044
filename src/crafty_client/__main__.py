"""Module entrypoint.

Allows:
    python -m crafty_client
"""

from __future__ import annotations

from crafty_client.server.crafty_server import main

if __name__ == "__main__":
    main()
