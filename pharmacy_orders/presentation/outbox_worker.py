import asyncio
import logging

from pharmacy_orders.database import AsyncSessionLocal
from pharmacy_orders.infrastructure.unit_of_work import UnitOfWork
from pharmacy_orders.infrastructure.kafka_producer import KafkaProducerClient
from pharmacy_orders.application.process_outbox import ProcessOutboxEventsUseCase
from pharmacy_orders.config import settings

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

kafka_producer = KafkaProducerClient(settings.KAFKA_BOOTSTRAP_SERVERS, settings.ORDER_EVENTS_TOPIC)


async def outbox_worker():
    """Relays order and stock events from the outbox table to Kafka"""
    logger.info("Outbox worker started")

    await kafka_producer.start()

    try:
        while True:
            try:
                use_case = ProcessOutboxEventsUseCase(
                    unit_of_work=UnitOfWork(AsyncSessionLocal),
                    publisher=kafka_producer
                )

                processed = await use_case(limit=10)
                if processed:
                    logger.info(f"Relayed {processed} outbox events")

                await asyncio.sleep(3)

            except Exception as e:
                logger.error(f"Outbox worker error: {e}", exc_info=True)
                await asyncio.sleep(10)
    finally:
        await kafka_producer.stop()


async def main():
    await outbox_worker()


if __name__ == "__main__":
    asyncio.run(main())
