from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from pathlib import Path

import yaml

from relay.server.admin import AdminConsole
from relay.server.runtime import ServerRuntime

log = logging.getLogger("relay.cmd.server")


async def _run(config_path: Path) -> None:
    config = yaml.safe_load(config_path.read_text()) or {}
    runtime = ServerRuntime(config)
    await runtime.start()

    loop = asyncio.get_running_loop()
    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, runtime.closed.set)
    except NotImplementedError:
        pass

    console = None
    if config.get("admin_console", True):
        console = asyncio.create_task(AdminConsole(runtime).run(), name="admin-console")

    log.info("Relay running. Type /stop or press Ctrl+C to stop.")
    try:
        await runtime.closed.wait()
    finally:
        if console is not None:
            console.cancel()
        await runtime.stop()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Poll-based chat relay server")
    parser.add_argument("--config", required=True, help="Path to server YAML config")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config_path = Path(args.config)
    asyncio.run(_run(config_path))


if __name__ == "__main__":
    main()
