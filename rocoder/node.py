"""Processing nodes that run on their own thread and take control messages."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from enum import Enum, auto
from typing import Any

from .audio import Channel


class ProcessorState(Enum):
    RUNNING = auto()
    FINISHED = auto()


class Processor(ABC):
    """Work that runs on a background thread, steered by control messages."""

    @classmethod
    @abstractmethod
    def shutdown_message(cls) -> Any:
        """The control message that asks this processor to stop."""

    @abstractmethod
    def start(self, finished: threading.Event) -> tuple[Channel, threading.Thread]:
        """Start the processor's thread.

        Returns the channel to send control messages on and the started
        thread. ``finished`` must be set once the work is over.
        """

    @abstractmethod
    def handle_control_messages(self, rx: Channel) -> ProcessorState:
        """Handle a control message if one is ready, without blocking.

        Returns FINISHED after a shutdown message, RUNNING otherwise.
        """


class Node:
    """A started processor together with its control channel and thread."""

    def __init__(self, processor: Processor) -> None:
        self._processor = processor
        self._finished = threading.Event()
        self._sender, self._thread = processor.start(self._finished)

    def send_control_message(self, message: Any) -> None:
        """Send a control message; raises ChannelClosed if the processor stopped listening."""
        self._sender.send(message)

    def shutdown(self) -> threading.Thread:
        """Ask the processor to stop and return its thread for joining."""
        self.send_control_message(type(self._processor).shutdown_message())
        return self._thread

    def join(self) -> None:
        self._thread.join()

    def is_finished(self) -> bool:
        return self._finished.is_set()