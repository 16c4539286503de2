from shared.rabbitmq import RabbitPublisher

from .coordinator import EVENT_SOURCE

publisher = RabbitPublisher(EVENT_SOURCE)
