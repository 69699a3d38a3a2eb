"""
Fixed-window text splitting
Overlapping windows measured in characters or tiktoken tokens
"""
from dataclasses import dataclass
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextSpan:
    """A window of the input text with its character offsets"""
    text: str
    start: int
    end: int
    index: int


class TextSplitter:
    """
    Splits text into overlapping windows

    Window k starts at k * (window_size - overlap); the final window always
    ends at the end of the text, so nothing is dropped. For a text of length
    L > W this yields ceil((L - O) / (W - O)) windows, and exactly one window
    when 0 < L <= W.

    In token mode L counts tokens, and each window is mapped back to the
    whole characters its bytes touch, so span.text == text[span.start:span.end].
    """

    def __init__(
        self,
        window_size: int,
        overlap: int = 0,
        length_unit: str = "chars",
        encoding_name: str = "cl100k_base"
    ):
        self._validate(window_size, overlap)
        if length_unit not in ("chars", "tokens"):
            raise ValueError(f"Unsupported length unit: {length_unit}")

        self.window_size = window_size
        self.overlap = overlap
        self.length_unit = length_unit
        self.encoding_name = encoding_name
        self._tokenizer = None

    @staticmethod
    def _validate(window_size: int, overlap: int):
        if window_size <= 0:
            raise ValueError("window_size must be positive")
        if overlap < 0:
            raise ValueError("overlap must be non-negative")
        if overlap >= window_size:
            raise ValueError("overlap must be smaller than window_size")

    @property
    def tokenizer(self):
        """tiktoken encoding, loaded on first token-mode split"""
        if self._tokenizer is None:
            import tiktoken
            self._tokenizer = tiktoken.get_encoding(self.encoding_name)
        return self._tokenizer

    def split(
        self,
        text: str,
        window_size: Optional[int] = None,
        overlap: Optional[int] = None
    ) -> List[TextSpan]:
        """
        Split text into ordered overlapping spans

        Args:
            text: Text to split
            window_size: Override the configured window size
            overlap: Override the configured overlap

        Returns:
            Spans in document order; empty for blank text
        """
        window_size = self.window_size if window_size is None else window_size
        overlap = self.overlap if overlap is None else overlap
        self._validate(window_size, overlap)

        if not text or not text.strip():
            return []

        if self.length_unit == "tokens":
            return self._split_tokens(text, window_size, overlap)
        return self._split_chars(text, window_size, overlap)

    def _split_chars(self, text: str, window_size: int, overlap: int) -> List[TextSpan]:
        spans = []
        stride = window_size - overlap
        start = 0

        while True:
            end = min(start + window_size, len(text))
            spans.append(TextSpan(text=text[start:end], start=start, end=end, index=len(spans)))
            if end >= len(text):
                break
            start += stride

        return spans

    def _split_tokens(self, text: str, window_size: int, overlap: int) -> List[TextSpan]:
        tokens = self.tokenizer.encode(text)

        # Byte offset at which each token ends in the UTF-8 encoding of text
        token_ends = []
        position = 0
        for token in tokens:
            position += len(self.tokenizer.decode_single_token_bytes(token))
            token_ends.append(position)

        # Character index owning each UTF-8 byte
        char_of_byte = []
        for char_index, char in enumerate(text):
            char_of_byte.extend([char_index] * len(char.encode("utf-8")))

        spans = []
        stride = window_size - overlap
        start = 0

        while True:
            end = min(start + window_size, len(tokens))
            start_byte = token_ends[start - 1] if start else 0
            end_byte = token_ends[end - 1]

            # A token boundary may fall inside a multibyte character; widen to whole characters
            start_char = char_of_byte[start_byte]
            end_char = char_of_byte[end_byte - 1] + 1

            spans.append(TextSpan(
                text=text[start_char:end_char],
                start=start_char,
                end=end_char,
                index=len(spans)
            ))
            if end >= len(tokens):
                break
            start += stride

        return spans

    def expected_span_count(self, length: int) -> int:
        """Number of windows split() produces for an input of the given length"""
        if length <= 0:
            return 0
        if length <= self.window_size:
            return 1
        stride = self.window_size - self.overlap
        return -(-(length - self.overlap) // stride)
