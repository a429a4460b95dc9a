"""
StatusManager for handling and distributing status events.
"""

from collections import deque
from typing import Deque, Dict, List, TYPE_CHECKING
import logging

if TYPE_CHECKING:
    from ..event_bus import EventBus
    from .events import StatusEvent
    from .channels import ChannelAdapter
    from ..config import StatusConfig

logger = logging.getLogger(__name__)

STATUS_EVENT_TYPES = [
    'RunStartEvent',
    'AgentActionEvent',
    'ToolCallEvent',
    'RunEndEvent',
    'RunErrorEvent',
]

# Event types that close a run; its stored events are dropped after them
TERMINAL_EVENT_TYPES = ("runend", "runerror")


class StatusManager:
    """
    Manages status events and distributes to channels.

    Subscribes to EventBus for status events and forwards
    formatted updates to configured output channels.
    """

    def __init__(self, event_bus: 'EventBus', config: 'StatusConfig', max_events_per_run: int = 1000):
        self.event_bus = event_bus
        self.config = config
        self.channels: List['ChannelAdapter'] = []
        self.max_events_per_run = max_events_per_run

        # Run-based storage
        self.run_events: Dict[str, Deque] = {}

        for event_type in STATUS_EVENT_TYPES:
            self.event_bus.subscribe(event_type, self.handle_event)

    def add_channel(self, channel: 'ChannelAdapter') -> None:
        self.channels.append(channel)

    async def handle_event(self, event: 'StatusEvent') -> None:
        """Process incoming status event."""
        if self.config.should_show_event(event.event_type):
            if event.run_id not in self.run_events:
                self.run_events[event.run_id] = deque(maxlen=self.max_events_per_run)
            self.run_events[event.run_id].append(event)

            await self._forward_to_channels(event)

        if event.event_type in TERMINAL_EVENT_TYPES:
            self.clear_run(event.run_id)

    async def _forward_to_channels(self, event: 'StatusEvent') -> None:
        """Forward event to all active channels."""
        for channel in self.channels:
            if channel.is_enabled():
                try:
                    await channel.send(event)
                except Exception as e:
                    logger.debug(f"Channel {channel.name} failed: {e}")

    def clear_run(self, run_id: str) -> None:
        self.run_events.pop(run_id, None)

    async def shutdown(self) -> None:
        """Unsubscribe from the bus and close all channels."""
        for event_type in STATUS_EVENT_TYPES:
            self.event_bus.unsubscribe(event_type, self.handle_event)
        for channel in self.channels:
            await channel.close()
        self.channels.clear()
