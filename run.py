"""Project root entry point for launching the web API."""

from __future__ import annotations

import os

from modtranslator.web import create_app


def main():
    app = create_app()
    port = int(os.environ.get("MODTRANSLATOR_PORT", "5500"))
    app.run(host="0.0.0.0", port=port, debug=True)


if __name__ == "__main__":
    main()
