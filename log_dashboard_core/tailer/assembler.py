"""BlockAssembler — turns the ordered line stream into log events.

Recognizes block open/close markers, buffers interior lines, parses closed
blocks, runs the single-line grammar on standalone lines, and links a
GetMapImageRequest block to the ImageService line that later reports the
saved map image path.

Only the most recent outstanding map image request is tracked: a new
request replaces the previous one even if its path never arrived.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..events import BlockKind, ImagePathEvent, MapImageRequestEvent
from .grammar import GrammarConfig, parse_block, parse_image_path, parse_line

logger = logging.getLogger("tailer")


@dataclass
class PendingCorrelation:
    kind: BlockKind
    correlation_key: str


@dataclass
class AssemblyState:
    current_block: Optional[BlockKind] = None
    buffered_lines: List[str] = field(default_factory=list)
    pending: Optional[PendingCorrelation] = None


class BlockAssembler:
    """Stateful line consumer. Not thread-safe; LogTailer serializes access."""

    def __init__(self, grammar: Optional[GrammarConfig] = None):
        self.grammar = grammar or GrammarConfig()
        self.state = AssemblyState()

    @property
    def waiting_for_image(self) -> Optional[str]:
        """Play id whose image path is still expected, if any."""
        if self.state.pending is None:
            return None
        return self.state.pending.correlation_key

    def reset(self):
        """Drop the open block, its buffer and any pending correlation together."""
        self.state = AssemblyState()

    def feed(self, line: str) -> list:
        """Consume one line. Returns the events it completed (possibly none)."""
        if not line:
            return []
        try:
            return self._feed(line)
        except Exception as e:
            # Per-line failures degrade to "no event"; the assembler stays usable.
            logger.debug(f"[tailer] line dropped: {e}")
            return []

    def feed_lines(self, lines) -> list:
        events = []
        for line in lines:
            events.extend(self.feed(line))
        return events

    def _feed(self, line: str) -> list:
        g = self.grammar
        st = self.state

        if g.find_save_marker in line:
            st.current_block = BlockKind.FIND_SAVE
            st.buffered_lines = []
            return []

        if g.map_image_marker in line:
            st.current_block = BlockKind.MAP_IMAGE
            st.buffered_lines = []
            return []

        if g.close_marker in line:
            return self._close_block()

        if st.current_block is not None:
            st.buffered_lines.append(line)
            return []

        return self._standalone(line)

    def _close_block(self) -> list:
        st = self.state
        if st.current_block is None:
            return []

        kind, lines = st.current_block, st.buffered_lines
        st.current_block = None
        st.buffered_lines = []

        event = parse_block(kind, lines)
        if event is None:
            return []
        if isinstance(event, MapImageRequestEvent):
            st.pending = PendingCorrelation(kind=kind, correlation_key=event.play_id)
        return [event]

    def _standalone(self, line: str) -> list:
        events = []
        plain = parse_line(line)
        if plain is not None:
            events.append(plain)

        pending = self.state.pending
        if pending is not None:
            path = parse_image_path(line, self.grammar)
            if path:
                events.append(ImagePathEvent(play_id=pending.correlation_key, path=path))
                self.state.pending = None
        return events
