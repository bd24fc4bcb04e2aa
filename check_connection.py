#!/usr/bin/env python3
"""
Connection diagnostics for the mahjong server.
Checks whether the port is free, whether the HTTP server answers, and whether a
Socket.IO client can connect.
"""
import argparse
import socket
import sys

import requests
import socketio


def check_port(host, port):
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        s.bind((host, port))
        return True, None
    except OSError as e:
        return False, str(e)
    finally:
        s.close()


def check_server(url, timeout=3):
    try:
        response = requests.get(f"{url}/health", timeout=timeout)
        return True, response.status_code, response.json() if response.ok else None
    except requests.RequestException as e:
        return False, None, str(e)


def check_socketio(url, timeout=3):
    client = socketio.Client(reconnection=False)
    try:
        client.connect(url, transports=['websocket', 'polling'], wait_timeout=timeout)
        return True, client.transport()
    except socketio.exceptions.ConnectionError as e:
        return False, str(e)
    finally:
        if client.connected:
            client.disconnect()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Diagnose connection problems with the mahjong server.")
    parser.add_argument('--host', default='localhost')
    parser.add_argument('--port', type=int, default=5000)
    args = parser.parse_args(argv)
    url = f"http://{args.host}:{args.port}"

    print("Checking mahjong server connection")
    print("=" * 50)

    print(f"1. Is port {args.port} free?")
    port_free, port_error = check_port('0.0.0.0', args.port)
    if port_free:
        print(f"   Port {args.port} is free, nothing is listening on it.")
    else:
        print(f"   Port {args.port} is in use ({port_error}).")

    print("2. Does the HTTP server answer?")
    running, status, detail = check_server(url)
    if running:
        print(f"   Server answered with status {status}: {detail}")
    else:
        print(f"   No answer: {detail}")
        print("   Start it with: python server.py")

    print("3. Can a Socket.IO client connect?")
    connected, transport = check_socketio(url) if running else (False, "server not running")
    if connected:
        print(f"   Connected using {transport}.")
    else:
        print(f"   Could not connect: {transport}")

    print("=" * 50)
    if running and connected:
        print("Everything looks fine.")
        return 0
    if port_free:
        print("The port is free but the server is not running.")
    else:
        print("Something else may be holding the port, or a firewall/proxy is in the way.")
    return 1


if __name__ == '__main__':
    sys.exit(main())
