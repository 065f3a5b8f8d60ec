"""Runs a set of per-channel stretchers on a background thread."""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from enum import Enum, auto

from .audio import AudioBus, Channel, ChannelClosed, ChannelEmpty
from .node import Processor, ProcessorState
from .stretcher import Stretcher

log = logging.getLogger(__name__)


class StretcherControlMessage(Enum):
    SHUTDOWN = auto()


class StretcherProcessor(Processor):
    """Feeds each stretcher's windows into its own output channel."""

    def __init__(self, channels: Sequence[tuple[Channel, Stretcher]]) -> None:
        self._channels = list(channels)

    @classmethod
    def create(
        cls, channel_stretchers: Sequence[Stretcher], expected_total_samples: int | None
    ) -> tuple[StretcherProcessor, AudioBus]:
        """Build a processor and the bus its output arrives on."""
        if not channel_stretchers:
            raise ValueError("at least one stretcher is required")
        spec = channel_stretchers[0].spec
        pairs = [
            (Channel(maxsize=stretcher.channel_bound()), stretcher)
            for stretcher in channel_stretchers
        ]
        bus = AudioBus(spec, [output for output, _ in pairs], expected_total_samples)
        return cls(pairs), bus

    @classmethod
    def shutdown_message(cls) -> StretcherControlMessage:
        return StretcherControlMessage.SHUTDOWN

    def start(self, finished: threading.Event) -> tuple[Channel, threading.Thread]:
        ctrl = Channel()
        thread = threading.Thread(
            target=self._run, args=(ctrl, finished), name="stretcher", daemon=True
        )
        thread.start()
        return ctrl, thread

    def handle_control_messages(self, rx: Channel) -> ProcessorState:
        try:
            message = rx.try_recv()
        except ChannelEmpty:
            return ProcessorState.RUNNING
        except ChannelClosed:
            return ProcessorState.FINISHED
        if message is StretcherControlMessage.SHUTDOWN:
            return ProcessorState.FINISHED
        return ProcessorState.RUNNING

    def _run(self, ctrl: Channel, finished: threading.Event) -> None:
        try:
            while self.handle_control_messages(ctrl) is ProcessorState.RUNNING:
                if not self._step():
                    break
        except Exception:
            log.exception("stretch process failed")
        finally:
            for output, _ in self._channels:
                output.close()
            finished.set()

    def _step(self) -> bool:
        for output, stretcher in self._channels:
            if stretcher.is_done():
                # Every stretcher is assumed to finish at the same time.
                log.info("stretch process completed")
                return False
            output.send(stretcher.next_window())
        return True