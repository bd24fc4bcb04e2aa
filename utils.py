import socket
import threading

import eventlet


def get_local_ip():
    """Best guess at the LAN address other players should connect to."""
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # No packet is sent, connecting a UDP socket only picks the outgoing interface
        s.connect(("10.255.255.255", 1))
        return s.getsockname()[0]
    except OSError:
        return "127.0.0.1"
    finally:
        s.close()


def eventlet_spawn_after(seconds, callback):
    return eventlet.spawn_after(seconds, callback)


def thread_spawn_after(seconds, callback):
    timer = threading.Timer(seconds, callback)
    timer.daemon = True
    timer.start()
    return timer


def scheduler_for(async_mode):
    """
    Claim-timer scheduler matching the Socket.IO async mode.
    Both return a handle with cancel().
    """
    if async_mode == 'eventlet':
        return eventlet_spawn_after
    return thread_spawn_after
