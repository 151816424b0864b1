#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import os
import sys
import argparse
import json
import asyncio
import datetime
import logging
from signal import SIGINT, SIGTERM

from doorbird_lan_api.internal_types import *

from doorbird_lan_api import (
    __version__ as pkg_version,
    DoorbirdClient,
    DoorbirdNotificationSocket,
    MotionEvent,
    RingEvent,
    DoorbirdError,
    client_session_fetcher,
    DOORBIRD_NOTIFY_PORT,
  )
from doorbird_lan_api.config import ConfigContext, DeviceConfig, DEFAULT_CONFIG_FILE
from doorbird_lan_api.simulator import make_payload, make_v1_notification, make_v2_notification, send_datagram

class CmdExitError(RuntimeError):
    exit_code: int

    def __init__(self, exit_code: int, msg: Optional[str]=None):
        if msg is None:
            msg = f"Command exited with return code {exit_code}"
        super().__init__(msg)
        self.exit_code = exit_code

class ArgparseExitError(CmdExitError):
    pass

class NoExitArgumentParser(argparse.ArgumentParser):
    def exit(self, status=0, message=None):
        if message:
            self._print_message(message, sys.stderr)
        raise ArgparseExitError(status, message)

def print_json(data: Jsonable) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))
    sys.stdout.flush()

class CommandHandler:
    _argv: Optional[Sequence[str]]
    _parser: argparse.ArgumentParser
    _args: argparse.Namespace
    _provide_traceback: bool = True
    _device_config: Optional[DeviceConfig] = None

    def __init__(self, argv: Optional[Sequence[str]]=None):
        self._argv = argv

    def get_device_config(self) -> DeviceConfig:
        if self._device_config is None:
            config_file: Optional[str] = self._args.config_file
            if config_file is None:
                config_file = os.environ.get('DOORBIRD_CONFIG')
            if config_file is None and os.path.exists(os.path.expanduser(DEFAULT_CONFIG_FILE)):
                config_file = DEFAULT_CONFIG_FILE
            if config_file is None:
                cfg = DeviceConfig()
            else:
                cfg = ConfigContext().load_file(config_file)
            cfg.override(
                host=self._args.host,
                scheme=self._args.scheme,
                username=self._args.username,
                password=self._args.password,
              )
            self._device_config = cfg
        return self._device_config

    def create_client(self) -> DoorbirdClient:
        return DoorbirdClient(**self.get_device_config().client_kwargs())

    async def run_client(self, method_name: str, *args: Any) -> Any:
        with self.create_client() as client:
            method = getattr(client, method_name)
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, method, *args)

    async def cmd_bare(self) -> int:
        print("A command is required", file=sys.stderr)
        return 1

    async def cmd_listen(self) -> int:
        cfg = self.get_device_config()
        port: int = cfg.notify_port if self._args.port is None else self._args.port
        suppress_bursts: bool = cfg.suppress_bursts or self._args.suppress_bursts
        client: Optional[DoorbirdClient] = None
        if cfg.host is not None:
            # version 2 notifications need the session key from the Control API
            client = self.create_client()

        def on_ring(event: RingEvent) -> None:
            print(json.dumps(event.to_jsonable(), sort_keys=True))
            sys.stdout.flush()

        def on_motion(event: MotionEvent) -> None:
            print(json.dumps(event.to_jsonable(), sort_keys=True))
            sys.stdout.flush()

        def on_error(exc: DoorbirdError) -> None:
            logging.warning(f"Notification dropped: {exc}")

        notify_socket = DoorbirdNotificationSocket(
            port,
            cfg.require_username(),
            cfg.get_password(),
            suppress_bursts=suppress_bursts,
            session_fetcher=None if client is None else client_session_fetcher(client),
            error_handler=on_error,
          )
        notify_socket.register_ring_listener(on_ring)
        notify_socket.register_motion_listener(on_motion)

        loop = asyncio.get_running_loop()
        stop_event = asyncio.Event()
        for signal in (SIGINT, SIGTERM):
            loop.add_signal_handler(signal, stop_event.set)
        try:
            async with notify_socket:
                logging.info(f"Listening for notifications on UDP port {notify_socket.port}")
                await stop_event.wait()
                logging.debug("Detected SIGINT/SIGTERM, closing notification socket")
        finally:
            for signal in (SIGINT, SIGTERM):
                loop.remove_signal_handler(signal)
            if client is not None:
                client.close()
        return 0

    async def cmd_simulate(self) -> int:
        cfg = self.get_device_config()
        username = cfg.require_username()
        timestamp = datetime.datetime.now(tz=datetime.timezone.utc)
        payload = make_payload(username, self._args.event, timestamp)
        loop = asyncio.get_running_loop()
        if self._args.key is None:
            datagram = await loop.run_in_executor(None, make_v1_notification, cfg.get_password(), payload)
        else:
            datagram = make_v2_notification(self._args.key.encode('utf-8')[:32], payload)
        port: int = cfg.notify_port if self._args.port is None else self._args.port
        await send_datagram(datagram, (self._args.target, port))
        return 0

    async def cmd_session(self) -> int:
        print_json(await self.run_client('initialize_session'))
        return 0

    async def cmd_info(self) -> int:
        print_json(await self.run_client('get_info'))
        return 0

    async def cmd_open_door(self) -> int:
        print_json(await self.run_client('open_door', self._args.relay))
        return 0

    async def cmd_light_on(self) -> int:
        print_json(await self.run_client('light_on'))
        return 0

    async def cmd_restart(self) -> int:
        await self.run_client('restart')
        return 0

    async def cmd_favorites(self) -> int:
        print_json(await self.run_client('list_favorites'))
        return 0

    async def cmd_schedule(self) -> int:
        print_json(await self.run_client('get_schedule'))
        return 0

    async def cmd_sip_status(self) -> int:
        print_json(await self.run_client('sip_status'))
        return 0

    async def cmd_version(self) -> int:
        print(pkg_version)
        return 0

    async def arun(self) -> int:
        """Run the doorbird command-line tool with provided arguments

        Args:
            argv (Optional[Sequence[str]], optional):
                A list of commandline arguments (NOT including the program as argv[0]!),
                or None to use sys.argv[1:]. Defaults to None.

        Returns:
            int: The exit code that would be returned if this were run as a standalone command.
        """
        parser = NoExitArgumentParser(description="Control a DoorBird intercom and receive its event notifications.")

        # ======================= Main command

        self._parser = parser
        parser.add_argument('--traceback', "--tb", action='store_true', default=False,
                            help='Display detailed exception information')
        parser.add_argument('--log-level', dest='log_level', default='warning',
                            choices=['debug', 'info', 'warning', 'error', 'critical'],
                            help='''The logging level to use. Default: warning''')
        parser.add_argument('-c', '--config', dest='config_file', default=None,
                            help=f'''The device configuration file. Default: $DOORBIRD_CONFIG, or {DEFAULT_CONFIG_FILE} if it exists''')
        parser.add_argument('--host', default=None,
                            help='''The device host name or IP address. Overrides the configuration file.''')
        parser.add_argument('--scheme', default=None, choices=['http', 'https'],
                            help='''The Control API URL scheme. Overrides the configuration file.''')
        parser.add_argument('-u', '--username', default=None,
                            help='''The device user name. Overrides the configuration file.''')
        parser.add_argument('-p', '--password', default=None,
                            help='''The device password. Overrides the configuration file.''')
        parser.set_defaults(func=self.cmd_bare)

        subparsers = parser.add_subparsers(
                            title='Commands',
                            description='Valid commands',
                            help='Additional help available with "<command-name> -h"')

        # ======================= listen

        parser_listen = subparsers.add_parser('listen', description="Print received doorbell and motion events as JSON lines")
        parser_listen.add_argument('--port', type=int, default=None,
                            help=f'''The UDP port to listen on. Default: configured notify_port, or {DOORBIRD_NOTIFY_PORT}''')
        parser_listen.add_argument('--suppress-bursts', dest='suppress_bursts', action='store_true', default=False,
                            help='Drop notifications arriving within 1 second of the last accepted one')
        parser_listen.set_defaults(func=self.cmd_listen)

        # ======================= simulate

        parser_simulate = subparsers.add_parser('simulate', description="Send a synthetic notification, as a device would")
        parser_simulate.add_argument('--target', default='127.0.0.1',
                            help='''The host to send the notification to. Default: 127.0.0.1''')
        parser_simulate.add_argument('--port', type=int, default=None,
                            help=f'''The UDP port to send to. Default: configured notify_port, or {DOORBIRD_NOTIFY_PORT}''')
        parser_simulate.add_argument('--event', default='motion',
                            help='''The event tag: "motion" or a doorbell event name. Default: motion''')
        parser_simulate.add_argument('--key', default=None,
                            help='''Send a version 2 notification encrypted with this session key. Default: version 1''')
        parser_simulate.set_defaults(func=self.cmd_simulate)

        # ======================= control API

        parser_session = subparsers.add_parser('session', description="Initialize a Control API session")
        parser_session.set_defaults(func=self.cmd_session)

        parser_info = subparsers.add_parser('info', description="Display device information")
        parser_info.set_defaults(func=self.cmd_info)

        parser_open_door = subparsers.add_parser('open-door', description="Energize a door relay")
        parser_open_door.add_argument('relay', nargs='?', default='1',
                            help='''The relay to energize. Default: 1''')
        parser_open_door.set_defaults(func=self.cmd_open_door)

        parser_light_on = subparsers.add_parser('light-on', description="Turn on the infrared light")
        parser_light_on.set_defaults(func=self.cmd_light_on)

        parser_restart = subparsers.add_parser('restart', description="Restart the device")
        parser_restart.set_defaults(func=self.cmd_restart)

        parser_favorites = subparsers.add_parser('favorites', description="List SIP and HTTP favorites")
        parser_favorites.set_defaults(func=self.cmd_favorites)

        parser_schedule = subparsers.add_parser('schedule', description="Display the event schedule")
        parser_schedule.set_defaults(func=self.cmd_schedule)

        parser_sip_status = subparsers.add_parser('sip-status', description="Display SIP status")
        parser_sip_status.set_defaults(func=self.cmd_sip_status)

        # ======================= version

        parser_version = subparsers.add_parser('version',
                                description='''Display version information.''')
        parser_version.set_defaults(func=self.cmd_version)

        # =========================================================

        try:
            args = parser.parse_args(self._argv)
        except ArgparseExitError as ex:
            return ex.exit_code
        traceback: bool = args.traceback
        self._provide_traceback = traceback

        try:
            logging.basicConfig(
                level=logging.getLevelName(args.log_level.upper()),
            )
            self._args = args
            func: Callable[[], Awaitable[int]] = args.func
            logging.debug(f"Running command {func.__name__}, tb = {traceback}")
            rc = await func()
            logging.debug(f"Command {func.__name__} returned {rc}")
        except Exception as ex:
            if isinstance(ex, CmdExitError):
                rc = ex.exit_code
            else:
                rc = 1
            if rc != 0:
                if traceback:
                    raise
            print(f"doorbird: error: {ex}", file=sys.stderr)
        except BaseException as ex:
            print(f"doorbird: Unhandled exception: {ex}", file=sys.stderr)
            raise

        return rc

    def run(self) -> int:
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            rc = loop.run_until_complete(self.arun())
        finally:
            loop.close()
        return rc

def run(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = CommandHandler(argv).run()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

async def arun(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = await CommandHandler(argv).arun()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

# allow running with "python3 -m", or as a standalone script
if __name__ == "__main__":
    sys.exit(run())
