"""帧解码器。

把任意切分的网络块（bytes 或 str）还原成完整的 "data: " 记录：

- 每收到一块就追加到残留缓冲区，切出所有以 "\\n" 结尾的完整记录，末尾不完整的片段留到下一块。
- 没有 "data: " 前缀的记录（空行、event:/id: 行、注释）直接跳过。
- 字节按增量 UTF-8 解码，跨块的多字节字符不会被截断；非法字节替换为 U+FFFD 并计入 replaced。
- 输入结束时仍未见到分隔符的残留被丢弃，不算错误。

同一组记录无论按什么边界切分喂入，得到的帧序列都相同。
"""

import codecs
import logging
from typing import Iterable, Iterator, List, Union

from chat_stream.infrastructure.logging.logger import log_event

DATA_PREFIX = "data: "
RECORD_SEPARATOR = "\n"

Chunk = Union[bytes, bytearray, str]


class FrameDecoder:
    def __init__(self, prefix: str = DATA_PREFIX):
        self._prefix = prefix
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")()
        self.skipped = 0
        self.replaced = 0

    @property
    def pending(self) -> str:
        """尚未见到分隔符的残留内容。"""
        return self._buffer

    def feed(self, chunk: Chunk) -> List[str]:
        if isinstance(chunk, (bytes, bytearray)):
            text = self._decode(bytes(chunk))
        else:
            text = chunk
        if not text:
            return []
        self._buffer += text
        *records, self._buffer = self._buffer.split(RECORD_SEPARATOR)
        frames: List[str] = []
        for record in records:
            frame = self._extract(record)
            if frame is not None:
                frames.append(frame)
        return frames

    def finish(self) -> None:
        tail = self._decode(b"", final=True)
        residual = self._buffer + tail
        self._buffer = ""
        if residual.strip():
            log_event(
                logging.DEBUG,
                "Discarded undelimited stream residual",
                {},
                residual_length=len(residual),
            )

    def _decode(self, data: bytes, final: bool = False) -> str:
        """增量解码；每段非法 UTF-8 替换为 U+FFFD 并计数，本块有替换时记一条 WARNING。"""

        parts: List[str] = []
        replaced = 0
        while True:
            try:
                parts.append(self._utf8.decode(data, final))
                break
            except UnicodeDecodeError as e:
                # e.object 为解码器内部残留 + 本次输入
                raw = e.object
                parts.append(raw[:e.start].decode("utf-8"))
                parts.append("\ufffd")
                replaced += 1
                self._utf8.reset()
                data = raw[e.end:]
        if replaced:
            self.replaced += replaced
            log_event(
                logging.WARNING,
                "Replaced invalid UTF-8 in stream",
                {},
                replaced=replaced,
                replaced_total=self.replaced,
            )
        return "".join(parts)

    def _extract(self, record: str) -> Union[str, None]:
        if record.endswith("\r"):
            record = record[:-1]
        if not record.startswith(self._prefix):
            if record:
                self.skipped += 1
            return None
        return record[len(self._prefix):]


def iter_frames(chunks: Iterable[Chunk], prefix: str = DATA_PREFIX) -> Iterator[str]:
    """惰性地把块序列转换成帧序列。"""

    decoder = FrameDecoder(prefix)
    for chunk in chunks:
        yield from decoder.feed(chunk)
    decoder.finish()
