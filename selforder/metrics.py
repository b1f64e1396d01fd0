from prometheus_client import Counter, Gauge

ORDERS_SUBMITTED = Counter(
    "selforder_orders_submitted_total",
    "Order submissions by outcome",
    ["outcome"],  # success | failed
)

TABLE_UPDATES = Counter(
    "selforder_table_updates_total",
    "Table number reassignments by outcome",
    ["outcome"],  # success | failed
)

CATALOG_LOADS = Counter(
    "selforder_catalog_loads_total",
    "Catalog loads by outcome",
    ["outcome"],  # success | failed
)

ACTIVE_SUBSCRIPTIONS = Gauge(
    "selforder_order_subscriptions_active",
    "Open order stream subscriptions",
)

SNAPSHOTS_DELIVERED = Counter(
    "selforder_order_snapshots_total",
    "Order stream deliveries by outcome",
    ["outcome"],  # delivered | error
)

ORDER_EVENTS_CONSUMED = Counter(
    "selforder_order_events_consumed_total",
    "Kafka order events consumed",
    ["status"],  # processed | parse_error
)
