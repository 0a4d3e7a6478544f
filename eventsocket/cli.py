"""
Command line tool for talking to an Event Socket.

    eventsocket monitor [--events "CHANNEL_CREATE CHANNEL_HANGUP"]
    eventsocket api "show channels"
    eventsocket bgapi "originate user/1000 &park"
    eventsocket serve --listen-port 8084

Connection settings come from --config (YAML) and may be overridden on the
command line.
"""

import argparse
import logging
from typing import Optional

from colorama import Fore, Style, init as colorama_init

from .api import InboundClient, OutboundServer, OutboundSession, EventFormat
from .config import EslConfig, setup_logging
from .exceptions import EslConfigurationError
from .io import EslEvent
from .utils import run_with_keyboard_interrupt


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="eventsocket", description="Event Socket command line tool")
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("--traffic", action="store_true", help="print every frame sent and received")
    parser.add_argument("--verbose", "-v", action="store_true", help="log at DEBUG level on the console")

    inbound = argparse.ArgumentParser(add_help=False)
    inbound.add_argument("--host", help="switch address")
    inbound.add_argument("--port", type=int, help="switch event socket port")
    inbound.add_argument("--password", help="event socket password")
    inbound.add_argument("--timeout", type=float, help="connect timeout in seconds")

    sub = parser.add_subparsers(dest="command", required=True)

    monitor = sub.add_parser("monitor", parents=[inbound], help="print events until Ctrl+C")
    monitor.add_argument("--events", help="space separated event names, default ALL")
    monitor.add_argument("--format", choices=[f.value for f in EventFormat], help="event encoding")
    monitor.add_argument("--filter", nargs=2, metavar=("HEADER", "VALUE"), action="append", default=[],
                         help="only receive events where HEADER equals VALUE")

    api = sub.add_parser("api", parents=[inbound], help="run one API command and print the result")
    api.add_argument("api_command", help="command and arguments, quoted")

    bgapi = sub.add_parser("bgapi", parents=[inbound], help="run one background API command and print the result")
    bgapi.add_argument("api_command", help="command and arguments, quoted")

    serve = sub.add_parser("serve", help="accept outbound connections and log each call")
    serve.add_argument("--listen-host", help="address to listen on")
    serve.add_argument("--listen-port", type=int, help="port to listen on")
    return parser


def apply_overrides(config: EslConfig, args: argparse.Namespace) -> EslConfig:
    for attr, key in (("host", "host"), ("port", "port"), ("password", "password"),
                      ("timeout", "timeout"), ("events", "events"), ("format", "format")):
        value = getattr(args, attr, None)
        if value is not None:
            setattr(config.inbound, key, value)
    if getattr(args, "listen_host", None) is not None:
        config.outbound.listen_host = args.listen_host
    if getattr(args, "listen_port", None) is not None:
        config.outbound.listen_port = args.listen_port
    if args.verbose:
        config.logging.level = "DEBUG"
    config.validate()
    return config


def print_event(event: EslEvent) -> None:
    print(Fore.MAGENTA + f"{event.event_name}" + Style.BRIGHT + Fore.CYAN + f"  {event.unique_id or ''}" + Style.RESET_ALL)
    for name, value in event.event_headers.items():
        print(Fore.WHITE + Style.DIM + f"  {name}: " + Style.RESET_ALL + value)
    for line in event.body_lines:
        print(Fore.YELLOW + f"  | {line}" + Style.RESET_ALL)


async def connect(config: EslConfig, logger: logging.Logger, print_traffic: bool) -> InboundClient:
    return await InboundClient.create(
        config.inbound.host, config.inbound.port, config.inbound.password, config.inbound.timeout,
        logger=logger, print_traffic=print_traffic)


async def run_monitor(config: EslConfig, args: argparse.Namespace, logger: logging.Logger) -> None:
    async with await connect(config, logger, args.traffic) as client:
        for header, value in args.filter:
            await client.add_event_filter(header, value)
        response = await client.set_event_subscriptions(config.inbound.format, config.inbound.events)
        if not response.is_ok:
            logger.error(f"Event subscription refused: {response.reply_text}")
            return
        print(Fore.GREEN + f"Monitoring {config.inbound.events} on {config.inbound.host}:{config.inbound.port}" + Style.RESET_ALL)
        async for event in client.events():
            print_event(event)


async def run_api(config: EslConfig, args: argparse.Namespace, logger: logging.Logger) -> None:
    async with await connect(config, logger, args.traffic) as client:
        reply = await client.api(args.api_command)
        print(reply.body_text.rstrip("\n"))


async def run_bgapi(config: EslConfig, args: argparse.Namespace, logger: logging.Logger) -> None:
    async with await connect(config, logger, args.traffic) as client:
        event = await client.bgapi(args.api_command)
        print(Fore.MAGENTA + f"Job {event.job_uuid}" + Style.RESET_ALL)
        for line in event.body_lines:
            print(line)


class CallLogger:
    """Outbound handler that logs the channel data and events of each call"""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    async def on_connect(self, session: OutboundSession, channel_data: EslEvent) -> None:
        caller = channel_data.get_header("Caller-Caller-ID-Number", "unknown")
        destination = channel_data.get_header("Caller-Destination-Number", "unknown")
        self.logger.info(f"Call {session.uuid} from {caller} to {destination}")
        await session.myevents()

    def on_event(self, session: OutboundSession, event: EslEvent) -> None:
        self.logger.info(f"Call {session.uuid}: {event.event_name}")

    def on_disconnect(self, session: OutboundSession) -> None:
        self.logger.info(f"Call {session.uuid} ended")


async def run_serve(config: EslConfig, args: argparse.Namespace, logger: logging.Logger) -> None:
    server = OutboundServer(
        lambda: CallLogger(logger),
        host=config.outbound.listen_host,
        port=config.outbound.listen_port,
        logger=logger,
        max_workers=config.outbound.max_workers,
        print_traffic=args.traffic,
    )
    async with server:
        print(Fore.GREEN + f"Listening on {config.outbound.listen_host}:{server.bound_port}" + Style.RESET_ALL)
        await server.serve_forever()


COMMANDS = {
    "monitor": run_monitor,
    "api": run_api,
    "bgapi": run_bgapi,
    "serve": run_serve,
}


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    colorama_init()
    try:
        config = apply_overrides(EslConfig.load(args.config), args)
    except EslConfigurationError as e:
        parser.error(str(e))
    logger = setup_logging(config.logging)

    async def run() -> None:
        await COMMANDS[args.command](config, args, logger)

    run_with_keyboard_interrupt(run)


if __name__ == "__main__":
    main()
