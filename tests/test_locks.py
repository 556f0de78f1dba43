from __future__ import annotations

import threading
import time

from dqagent.validate.locks import ReadWriteLock


def test_readers_share_the_lock():
    lock = ReadWriteLock()
    with lock.read():
        with lock.read():
            pass


def test_writer_waits_for_readers():
    lock = ReadWriteLock()
    events: list[str] = []
    reading = threading.Event()

    def reader():
        with lock.read():
            reading.set()
            time.sleep(0.1)
            events.append("read")

    def writer():
        reading.wait()
        with lock.write():
            events.append("write")

    threads = [threading.Thread(target=reader), threading.Thread(target=writer)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)
    assert events == ["read", "write"]
