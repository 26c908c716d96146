from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple
import logging
import queue
import threading

import pyttsx3

logger = logging.getLogger("VoiceFeedback")
if not logger.hasHandlers():
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s %(levelname)s %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
logger.setLevel(logging.INFO)


@dataclass(frozen=True)
class AdvisoryPrompt:
    """What one spoken advisory session is started with."""
    system_prompt: str
    first_message: str


class ChannelListener:
    """Callbacks an advisory channel reports session events through. Methods may be called from any thread."""

    def on_connect(self) -> None:
        pass

    def on_disconnect(self) -> None:
        pass

    def on_error(self, error: BaseException) -> None:
        pass

    def on_mode_change(self, mode: str) -> None:
        pass


class AdvisoryChannel(ABC):
    """Base class for spoken feedback sinks."""

    @abstractmethod
    def start_session(self, prompt: AdvisoryPrompt, listener: ChannelListener) -> None:
        """
        Start speaking a prompt without blocking the caller.

        The channel must eventually report either on_disconnect or on_error
        to the listener. Raising here counts as a failed session.

        Args:
            prompt: System prompt and opening line for the session
            listener: Receives connect/disconnect/error/mode-change events
        """
        pass

    @abstractmethod
    def end_session(self) -> None:
        """Stop the current session, if any."""
        pass

    def close(self) -> None:
        """Release the channel. The default implementation only ends the session."""
        self.end_session()


class SpeechChannel(AdvisoryChannel):
    """Local text-to-speech channel that speaks the opening line of each prompt."""

    def __init__(self, rate: int = 150, volume: float = 1.0, engine=None):
        """
        Initialize the speech channel.

        Args:
            rate: Speech rate (words per minute)
            volume: Speech volume (0.0 to 1.0)
            engine: Pre-built pyttsx3-compatible engine; created with pyttsx3.init() if omitted
        """
        self.engine = engine if engine is not None else pyttsx3.init()
        self.engine.setProperty('rate', rate)
        self.engine.setProperty('volume', volume)

        self._tts_queue: "queue.Queue[Optional[Tuple[AdvisoryPrompt, ChannelListener]]]" = queue.Queue()
        self._speaking = threading.Event()
        self._tts_thread = threading.Thread(target=self._tts_worker, name="speech-channel", daemon=True)
        self._tts_thread.start()

    def start_session(self, prompt: AdvisoryPrompt, listener: ChannelListener) -> None:
        if not self._tts_thread.is_alive():
            raise RuntimeError("Speech channel is closed")
        self._tts_queue.put((prompt, listener))

    def end_session(self) -> None:
        if self._speaking.is_set():
            try:
                self.engine.stop()
            except Exception as e:
                logger.error(f"Error stopping speech: {e}")

    def close(self) -> None:
        self.end_session()
        self._tts_queue.put(None)
        self._tts_thread.join(timeout=2.0)

    def _tts_worker(self):
        while True:
            item = self._tts_queue.get()
            if item is None:
                break  # clean shutdown
            prompt, listener = item
            self._speaking.set()
            try:
                listener.on_connect()
                listener.on_mode_change("speaking")
                self.engine.say(prompt.first_message)
                self.engine.runAndWait()
            except Exception as e:
                logger.error(f"Speech session failed: {e}")
                listener.on_error(e)
            else:
                listener.on_disconnect()
            finally:
                self._speaking.clear()
