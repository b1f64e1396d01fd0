from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/selforder"
    log_level: str = "INFO"
    seed_catalog: bool = True

    # Cookies carrying the local keys (device_id, table_number)
    cookie_max_age: int = 60 * 60 * 24 * 365 * 5

    # Table reassignment: one independent update per pending order unless atomic
    table_update_atomic: bool = False

    # Kafka (empty disables the producer and the status consumer)
    kafka_bootstrap_servers: str | None = None
    kafka_consumer_group: str = "selforder-api"
    order_events_topic: str = "order.changed"
    order_status_topic: str = "order.status_changed"

    # Observability (empty disables span export)
    otlp_endpoint: str | None = "http://jaeger:4318/v1/traces"

    model_config = {"env_file": ".env"}


settings = Settings()
