# duoserve

duoserve is a small server that listens on `127.0.0.1` on one port for both TCP and
UDP. A selector loop reads incoming data, and a pool of worker threads produces
the replies.

## Behaviour

Each read from a TCP connection (up to 1023 bytes) and each UDP datagram counts as
one message. The message is cut at the first NUL byte and decoded as UTF-8. One
trailing `\n` and then one trailing `\r` are removed. The message is then handled
as follows:

| Message       | Reply                                               |
|---------------|-----------------------------------------------------|
| `/time`       | local time as `YYYY-MM-DD HH:MM:SS`                 |
| `/stats`      | `Total clients: N current clients: M`               |
| `/shutdown`   | empty; the server closes every client and stops     |
| other `/...`  | empty; the command is logged as unknown             |
| empty         | empty                                               |
| anything else | the message itself is sent back                     |

An empty reply sends nothing over TCP. Over UDP, it sends an empty datagram.

The statistics count TCP connections only. "Total" counts every connection since
the server started, and "current" counts the connections that are still open.

## Installation

```
pip install .
```

## Running

```
duoserve                 # port 8888, one worker per CPU
duoserve 9000 4          # port 9000, 4 worker threads
```

If exactly two arguments are given, they are the port and the number of worker
threads. Each is read as a leading integer, and text that does not start with a
number counts as 0. With any other number of arguments, the defaults are used.

Log lines go to standard output. SIGINT or SIGTERM stops the server cleanly. If
the sockets cannot be opened, the error is printed to standard error and the
command exits with status 1.

Try it out:

```
printf 'hello\n' | nc 127.0.0.1 8888
printf '/time\n'  | nc -u -w1 127.0.0.1 8888
```

## Use as a library

```python
import threading
from duoserve.server import Server

running = threading.Event()
with Server(running) as server:
    server.start(9000, 4)
    server.run()
```

- `Server.start(port, count_threads)` opens the sockets and the worker pool. It
  raises `ServerError` if that fails. Port `0` picks a free port, and the chosen
  port is then available as `server.port`.
- `Server.run()` serves until `Server.stop()` is called, a `/shutdown` arrives, or
  the `running` event is cleared. The event is checked at least every half
  second.
- `Server.process_message(message)` holds the reply rules above and can be
  called directly. `Server.stats()` returns the statistics line.
- `strip_line_ending(message)` and `current_time()` in `duoserve.server` are the
  helpers behind those rules.
- `duoserve.threadpool.ThreadPool(thread_count)` is a plain worker pool with
  `enqueue(task)` and `shutdown()`, and it also works as a context manager. After
  shutdown, new tasks are refused (`enqueue` returns `False`) and queued tasks are
  dropped.

## Limits

The server binds to `127.0.0.1` only and has no IPv6 support. Messages have no
framing beyond single reads and datagrams, so a long or split TCP message may be
answered in pieces.

## Development

```
pip install -e .[test]
pytest
```