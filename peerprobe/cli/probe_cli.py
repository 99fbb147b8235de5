#!/usr/bin/env python3
"""
Peer Probe CLI

Command-line interface for peer connection probes.

Commands:
- loopback: Run responder and initiator in one process over the in-memory network
- identity: Load or create this node's identity and print its address
- parse-address: Print the peer ID embedded in an address
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from loguru import logger

from ..config import ProbeConfig
from ..identity import NodeIdentity, format_address, parse_address
from ..roles.workflow import run_initiator, run_responder
from ..runtime.memory import InMemoryNetwork, MemoryRuntime


# Documentation-range addresses used by loopback runs
RESPONDER_HOST = "203.0.113.10"
INITIATOR_HOST = "10.0.0.2"
UNREACHABLE_HOST = "198.51.100.99"
LOOPBACK_PORT = 4001


class InterceptHandler(logging.Handler):
    """Route standard-library log records into loguru."""

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(level: str = "INFO"):
    """Send everything to stderr through loguru."""
    level = level.upper()
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
               "<cyan>{name}</cyan> - <level>{message}</level>"
    )
    logging.basicConfig(handlers=[InterceptHandler()], level=level, force=True)


class PeerProbeCLI:
    """
    CLI for peer connection probes.
    """

    def __init__(self):
        self.config: Optional[ProbeConfig] = None

    async def loopback(self, args):
        """Run both roles against each other in-process."""
        network = InMemoryNetwork()

        responder = MemoryRuntime(
            network,
            host=RESPONDER_HOST,
            port=LOOPBACK_PORT,
            reachable=True,
            announce_interval=args.announce_interval
        )
        initiator = MemoryRuntime(
            network,
            host=INITIATOR_HOST,
            port=LOOPBACK_PORT,
            reachable=False,
            announce=False
        )

        if args.no_address:
            peer_address = None
        elif args.unreachable_address:
            peer_address = format_address(UNREACHABLE_HOST, LOOPBACK_PORT, responder.peer_id)
        else:
            peer_address = responder.list_local_addresses()[0]

        config = self.config.model_copy(update={"peer_address": peer_address})
        logger.info("Responder: {}", responder.list_local_addresses()[0])
        logger.info("Initiator target: {}", peer_address or "(discover)")

        responder_task = asyncio.create_task(run_responder(responder, config))
        # Let the responder come up first, like a public node would be
        await asyncio.sleep(0)

        initiator_status = await run_initiator(initiator, config, args.correlation)

        if initiator_status != 0:
            responder_task.cancel()
        results = await asyncio.gather(responder_task, return_exceptions=True)
        responder_status = results[0] if isinstance(results[0], int) else 1

        if initiator_status == 0 and responder_status == 0:
            logger.info("✅ Loopback probe succeeded")
            return 0

        logger.error("❌ Loopback probe failed (initiator={}, responder={})", initiator_status, responder_status)
        return 1

    async def identity(self, args):
        """Show (and create if needed) this node's identity."""
        node = NodeIdentity.load_or_generate(args.data_dir or self.config.data_dir)

        print(f"Peer ID:    {node.peer_id}")
        print(f"Public key: {node.public_key}")
        print(f"Address:    {node.address(args.host, args.port)}")
        return 0

    async def parse_address(self, args):
        """Show the parts of an address."""
        parsed = parse_address(args.address)
        if parsed.identity is None:
            print(f"❌ No /p2p/ component in {args.address}")
            return 1

        print(f"Peer ID:   {parsed.identity}")
        print(f"Transport: {parsed.transport}")
        return 0

    def create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog="peerprobe",
            description="Two-party peer connection probe"
        )
        parser.add_argument("--log-level", default=None, help="Log level (default: PEERPROBE_LOG_LEVEL or INFO)")

        subparsers = parser.add_subparsers(dest="command", help="Command to run")

        # loopback command
        loopback_parser = subparsers.add_parser("loopback", help="Run both roles in-process")
        target_group = loopback_parser.add_mutually_exclusive_group()
        target_group.add_argument(
            "--unreachable-address",
            action="store_true",
            help="Give the initiator a dead address so it falls back to announcements"
        )
        target_group.add_argument(
            "--no-address",
            action="store_true",
            help="Give the initiator no address; it takes the first peer that announces"
        )
        loopback_parser.add_argument("--correlation", type=int, default=None, help="Fixed correlation value")
        loopback_parser.add_argument(
            "--announce-interval", type=float, default=1.0, help="Responder announcement interval (seconds)"
        )

        # identity command
        identity_parser = subparsers.add_parser("identity", help="Show node identity")
        identity_parser.add_argument("--data-dir", default=None, help="Key directory")
        identity_parser.add_argument("--host", default="127.0.0.1", help="Advertised host")
        identity_parser.add_argument("--port", type=int, default=LOOPBACK_PORT, help="Advertised port")

        # parse-address command
        parse_parser = subparsers.add_parser("parse-address", help="Show the peer ID in an address")
        parse_parser.add_argument("address", help="Address, e.g. /ip4/1.2.3.4/tcp/4001/p2p/<peer id>")

        return parser

    async def run_async(self, args):
        """Run CLI command asynchronously."""
        if args.command == "loopback":
            return await self.loopback(args)
        elif args.command == "identity":
            return await self.identity(args)
        elif args.command == "parse-address":
            return await self.parse_address(args)
        else:
            print("❌ Unknown command. Use --help for usage.")
            return 1

    def run(self, argv=None):
        """Run CLI (entry point)."""
        parser = self.create_parser()
        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help()
            return 1

        self.config = ProbeConfig.from_env(log_level=args.log_level)
        configure_logging(self.config.log_level)

        return asyncio.run(self.run_async(args))


def main():
    """CLI entry point."""
    cli = PeerProbeCLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
