import asyncio
import os
import tempfile
import unittest
from pathlib import Path
from typing import List


async def _ignore(line: str) -> None:
    return None


class TestTranscriptTailerPoll(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.path = Path(self._td.name) / "session.jsonl"
        self.path.write_bytes(b"")

    def tearDown(self) -> None:
        self._td.cleanup()

    def _append(self, data: bytes) -> None:
        with open(self.path, "ab") as f:
            f.write(data)

    def _tailer(self, *, from_end: bool = True):
        from xchat.kernel.tail import TranscriptTailer

        t = TranscriptTailer(self.path, _ignore, chat_id="-100")
        t.start(from_end=from_end, watch=False)
        return t

    def test_start_from_end_skips_history(self) -> None:
        self._append(b"old-1\nold-2\n")
        t = self._tailer(from_end=True)
        self.assertEqual(t.offset, len(b"old-1\nold-2\n"))
        self.assertEqual(t.poll(), [])
        self._append(b"new\n")
        self.assertEqual(t.poll(), ["new"])

    def test_start_from_beginning_reads_history(self) -> None:
        self._append(b"one\ntwo\n")
        t = self._tailer(from_end=False)
        self.assertEqual(t.poll(), ["one", "two"])

    def test_chunked_appends_deliver_each_line_once_in_order(self) -> None:
        t = self._tailer()
        lines = [f'{{"n": {i}, "text": "行{i}"}}' for i in range(8)]
        blob = "".join(ln + "\n" for ln in lines).encode("utf-8")

        got: List[str] = []
        # Odd chunk size so cuts land inside lines and inside multi-byte characters.
        for i in range(0, len(blob), 7):
            self._append(blob[i:i + 7])
            got.extend(t.poll())
        self.assertEqual(got, lines)
        self.assertEqual(t.pending, b"")
        self.assertEqual(t.offset, len(blob))

    def test_partial_line_waits_for_newline(self) -> None:
        t = self._tailer()
        self._append(b'{"a": 1')
        self.assertEqual(t.poll(), [])
        self.assertEqual(t.pending, b'{"a": 1')
        self._append(b"}\n")
        self.assertEqual(t.poll(), ['{"a": 1}'])

    def test_split_multibyte_character_is_reassembled(self) -> None:
        t = self._tailer()
        data = "交流模式\n".encode("utf-8")
        self._append(data[:2])
        self.assertEqual(t.poll(), [])
        self._append(data[2:])
        self.assertEqual(t.poll(), ["交流模式"])

    def test_blank_lines_are_skipped(self) -> None:
        t = self._tailer()
        self._append(b"\n  \nx\n\n")
        self.assertEqual(t.poll(), ["x"])

    def test_truncation_resets_cursor(self) -> None:
        t = self._tailer()
        self._append(b"line-1\nline-2\n")
        self.assertEqual(t.poll(), ["line-1", "line-2"])

        self.path.write_bytes(b"fresh\n")
        self.assertEqual(t.poll(), ["fresh"])
        self._append(b"after\n")
        self.assertEqual(t.poll(), ["after"])

    def test_replaced_file_is_read_from_start(self) -> None:
        t = self._tailer()
        self._append(b"a\n")
        self.assertEqual(t.poll(), ["a"])

        tmp = self.path.with_name("session.jsonl.new")
        tmp.write_bytes(b"b-1\nb-2-long-enough\n")
        os.replace(tmp, self.path)
        self.assertEqual(t.poll(), ["b-1", "b-2-long-enough"])

    def test_start_on_missing_file_raises(self) -> None:
        from xchat.kernel.tail import TranscriptTailer

        t = TranscriptTailer(self.path.with_name("missing.jsonl"), _ignore)
        with self.assertRaises(FileNotFoundError):
            t.start(watch=False)


class TestTranscriptTailerDispatch(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.path = Path(self._td.name) / "session.jsonl"
        self.path.write_bytes(b"")

    async def asyncTearDown(self) -> None:
        self._td.cleanup()

    async def test_handler_error_does_not_block_later_lines(self) -> None:
        from xchat.kernel.tail import TranscriptTailer

        seen: List[str] = []

        async def handler(line: str) -> None:
            if line == "bad":
                raise ValueError("boom")
            seen.append(line)

        t = TranscriptTailer(self.path, handler)
        t.start(watch=False)
        with open(self.path, "ab") as f:
            f.write(b"one\nbad\ntwo\n")
        with self.assertLogs("xchat.kernel.tail", level="ERROR"):
            n = await t.dispatch()
        self.assertEqual(n, 3)
        self.assertEqual(seen, ["one", "two"])

    async def test_watch_task_follows_appends_and_stop_is_idempotent(self) -> None:
        from xchat.kernel.tail import TranscriptTailer

        seen: List[str] = []

        async def handler(line: str) -> None:
            seen.append(line)

        t = TranscriptTailer(self.path, handler)
        t.start(interval=0.01)
        self.assertIsNotNone(t.task)
        with open(self.path, "ab") as f:
            f.write(b"hello\n")

        for _ in range(200):
            if seen:
                break
            await asyncio.sleep(0.01)
        self.assertEqual(seen, ["hello"])

        task = t.task
        t.stop()
        t.stop()
        self.assertIsNone(t.task)
        with self.assertRaises(asyncio.CancelledError):
            await task


if __name__ == "__main__":
    unittest.main()
