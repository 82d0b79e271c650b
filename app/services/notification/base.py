from abc import ABC, abstractmethod

class EventChannel(ABC):
    @abstractmethod
    async def publish(self, event_type: str, payload: dict, *, dedup_key: str, **kwargs):
        """
        Deliver one event. Delivery is at-least-once;
        consumers deduplicate on dedup_key.
        """
        pass
