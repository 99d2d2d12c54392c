import asyncio

import pytest

from gamelist.rwlock import ReadWriteLock


@pytest.mark.asyncio
async def test_readers_share_the_lock():
    lock = ReadWriteLock()
    async with lock.read():
        async with lock.read():
            assert lock.readers == 2
    assert lock.readers == 0


@pytest.mark.asyncio
async def test_writer_excludes_readers_until_released():
    events = []
    lock = ReadWriteLock()

    async def reader():
        async with lock.read():
            events.append("read")

    await lock.acquire_write()
    task = asyncio.create_task(reader())
    await asyncio.sleep(0.01)
    assert events == []
    assert lock.write_locked

    events.append("write released")
    await lock.release_write()
    await task
    assert events == ["write released", "read"]


@pytest.mark.asyncio
async def test_waiting_writer_blocks_new_readers():
    events = []
    lock = ReadWriteLock()

    async def writer():
        async with lock.write():
            events.append("write")

    async def late_reader():
        async with lock.read():
            events.append("late read")

    await lock.acquire_read()
    write_task = asyncio.create_task(writer())
    await asyncio.sleep(0.01)
    read_task = asyncio.create_task(late_reader())
    await asyncio.sleep(0.01)
    assert events == []

    await lock.release_read()
    await asyncio.gather(write_task, read_task)
    assert events == ["write", "late read"]
