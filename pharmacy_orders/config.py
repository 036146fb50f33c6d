import os
from decimal import Decimal
from dotenv import load_dotenv

from pharmacy_orders.domain.models import DeliveryTerms

load_dotenv()


class Settings:
    # Database
    POSTGRES_CONNECTION_STRING: str = os.getenv("POSTGRES_CONNECTION_STRING", "")

    # Pharmacy directory
    API_TOKEN: str = os.getenv("API_TOKEN", "")
    PHARMACY_DIRECTORY_URL: str = os.getenv("PHARMACY_DIRECTORY_URL", "")

    # Kafka
    KAFKA_BOOTSTRAP_SERVERS: str = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")
    ORDER_EVENTS_TOPIC: str = os.getenv("ORDER_EVENTS_TOPIC", "pharmacy.order.events")

    # Checkout
    TAX_RATE: str = os.getenv("TAX_RATE", "0.10")
    EMERGENCY_DELIVERY_FEE: str = os.getenv("EMERGENCY_DELIVERY_FEE", "9.99")
    STANDARD_DELIVERY_FEE: str = os.getenv("STANDARD_DELIVERY_FEE", "4.99")
    EMERGENCY_DELIVERY_MINUTES: int = int(os.getenv("EMERGENCY_DELIVERY_MINUTES", "10"))
    STANDARD_DELIVERY_MINUTES: int = int(os.getenv("STANDARD_DELIVERY_MINUTES", "45"))
    SUPPORTED_PAYMENT_METHODS: str = os.getenv("SUPPORTED_PAYMENT_METHODS", "cod")

    @property
    def DATABASE_URL(self) -> str:
        """Async URL for the application"""
        explicit = os.getenv("DATABASE_URL")
        if explicit:
            return explicit
        return self.POSTGRES_CONNECTION_STRING.replace("postgres://", "postgresql+asyncpg://")

    @property
    def SYNC_DATABASE_URL(self) -> str:
        """Sync URL for Alembic"""
        return self.POSTGRES_CONNECTION_STRING.replace("postgres://", "postgresql://")

    @property
    def payment_methods(self) -> tuple:
        return tuple(m.strip() for m in self.SUPPORTED_PAYMENT_METHODS.split(",") if m.strip())

    @property
    def delivery_terms(self) -> DeliveryTerms:
        return DeliveryTerms(
            tax_rate=Decimal(self.TAX_RATE),
            emergency_fee=Decimal(self.EMERGENCY_DELIVERY_FEE),
            standard_fee=Decimal(self.STANDARD_DELIVERY_FEE),
            emergency_minutes=self.EMERGENCY_DELIVERY_MINUTES,
            standard_minutes=self.STANDARD_DELIVERY_MINUTES
        )


settings = Settings()
