"""
Synthetic Snapshot Generator

Generates Olist-shaped source tables for testing and development.
Includes:
- Persons (customer_unique_id) with one customer_id per order
- Products across translated, untranslated and missing categories
- Orders with mixed statuses, multi-item baskets and repeat purchases
- Delivery timestamps, occasionally missing
"""

import random
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

import polars as pl
from faker import Faker

from olist_kpis.ingestion.snapshot import Snapshot


# =============================================================================
# CONFIGURATION
# =============================================================================

# (Portuguese name, English name or None when the lookup has no row)
CATEGORIES: List[Tuple[str, Optional[str]]] = [
    ("beleza_saude", "health_beauty"),
    ("informatica_acessorios", "computers_accessories"),
    ("cama_mesa_banho", "bed_bath_table"),
    ("esporte_lazer", "sports_leisure"),
    ("moveis_decoracao", "furniture_decor"),
    ("utilidades_domesticas", "housewares"),
    ("relogios_presentes", "watches_gifts"),
    ("portateis_cozinha_e_preparadores_de_alimentos", None),
    ("pc_gamer", None),
]

BASE_PRICE = {
    "beleza_saude": (10, 250),
    "informatica_acessorios": (20, 900),
    "cama_mesa_banho": (15, 300),
    "esporte_lazer": (10, 400),
    "moveis_decoracao": (30, 800),
    "utilidades_domesticas": (8, 200),
    "relogios_presentes": (40, 1200),
    "portateis_cozinha_e_preparadores_de_alimentos": (50, 600),
    "pc_gamer": (300, 3000),
}

ORDER_STATUSES = [
    ("delivered", 0.90),
    ("shipped", 0.03),
    ("canceled", 0.02),
    ("unavailable", 0.01),
    ("invoiced", 0.015),
    ("processing", 0.015),
    ("deliverd", 0.01),
]

# Orders per person (most Olist customers buy once)
ORDERS_PER_PERSON = ([1, 2, 3, 4], [0.80, 0.13, 0.05, 0.02])
ITEMS_PER_ORDER = ([1, 2, 3, 4], [0.75, 0.17, 0.06, 0.02])


# =============================================================================
# GENERATORS
# =============================================================================

class _SeededGenerator:
    """Shared seeded random state"""

    def __init__(self, fake: Faker, rng: random.Random):
        self.fake = fake
        self.rng = rng

    def _id(self) -> str:
        return uuid.UUID(int=self.rng.getrandbits(128)).hex


class PersonGenerator(_SeededGenerator):
    """Generate durable customer identities"""

    def generate(self, n: int) -> List[Dict]:
        return [
            {
                "customer_unique_id": self._id(),
                "customer_zip_code_prefix": self.rng.randint(1000, 99999),
                "customer_city": self.fake.city().lower(),
                "customer_state": self.fake.estado_sigla(),
            }
            for _ in range(n)
        ]


class ProductGenerator(_SeededGenerator):
    """Generate the product catalog and the category lookup"""

    def generate(self, n: int, missing_category_rate: float = 0.03) -> Tuple[pl.DataFrame, pl.DataFrame]:
        products = []
        for _ in range(n):
            category, _ = self.rng.choice(CATEGORIES)
            products.append({
                "product_id": self._id(),
                "product_category_name": None if self.rng.random() < missing_category_rate else category,
            })

        translation = pl.DataFrame(
            {
                "product_category_name": [pt for pt, en in CATEGORIES if en is not None],
                "product_category_name_english": [en for _, en in CATEGORIES if en is not None],
            }
        )
        return pl.DataFrame(products, schema={"product_id": pl.Utf8, "product_category_name": pl.Utf8}), translation


class OrderGenerator(_SeededGenerator):
    """Generate orders, items and the per-order customers rows"""

    def __init__(self, fake: Faker, rng: random.Random, persons: List[Dict], products: pl.DataFrame):
        super().__init__(fake, rng)
        self.persons = persons
        self.products = products.to_dicts()

    def _status(self) -> str:
        return self.rng.choices(
            [s[0] for s in ORDER_STATUSES],
            weights=[s[1] for s in ORDER_STATUSES],
        )[0]

    def _price(self, product: Dict) -> float:
        low, high = BASE_PRICE.get(product["product_category_name"], (10, 500))
        return round(self.rng.uniform(low, high), 2)

    def generate(
        self,
        start_date: datetime,
        end_date: datetime,
        missing_delivery_rate: float = 0.02,
    ) -> Tuple[pl.DataFrame, pl.DataFrame, pl.DataFrame]:
        orders, items, customers = [], [], []

        for person in self.persons:
            n_orders = self.rng.choices(*ORDERS_PER_PERSON)[0]

            for _ in range(n_orders):
                order_id = self._id()
                customer_id = self._id()
                status = self._status()
                purchased = self.fake.date_time_between(start_date=start_date, end_date=end_date)

                approved = purchased + timedelta(hours=self.rng.randint(1, 48))
                estimated = (purchased + timedelta(days=self.rng.randint(10, 35))).replace(
                    hour=0, minute=0, second=0, microsecond=0
                )
                carrier = delivered = None
                if status in ("delivered", "deliverd", "shipped"):
                    carrier = approved + timedelta(days=self.rng.randint(1, 5))
                if status in ("delivered", "deliverd") and self.rng.random() >= missing_delivery_rate:
                    delivered = carrier + timedelta(days=self.rng.randint(1, 30))

                orders.append({
                    "order_id": order_id,
                    "customer_id": customer_id,
                    "order_status": status,
                    "order_purchase_timestamp": purchased,
                    "order_approved_at": approved,
                    "order_delivered_carrier_date": carrier,
                    "order_delivered_customer_date": delivered,
                    "order_estimated_delivery_date": estimated,
                })
                customers.append({"customer_id": customer_id, **person})

                n_items = self.rng.choices(*ITEMS_PER_ORDER)[0]
                for item_seq in range(1, n_items + 1):
                    product = self.rng.choice(self.products)
                    items.append({
                        "order_id": order_id,
                        "order_item_id": item_seq,
                        "product_id": product["product_id"],
                        "seller_id": self._id(),
                        "shipping_limit_date": approved + timedelta(days=3),
                        "price": self._price(product),
                        "freight_value": round(self.rng.uniform(5, 60), 2),
                    })

        return (
            pl.DataFrame(orders, infer_schema_length=None),
            pl.DataFrame(items, infer_schema_length=None),
            pl.DataFrame(customers, infer_schema_length=None),
        )


# =============================================================================
# MAIN GENERATOR
# =============================================================================

class SnapshotGenerator:
    """
    Seeded generator of a complete Olist snapshot.

    Example:
        snapshot = SnapshotGenerator(seed=42).generate(n_persons=500)
    """

    def __init__(self, seed: int = 42):
        self.seed = seed
        self.fake = Faker("pt_BR")
        self.fake.seed_instance(seed)
        self.rng = random.Random(seed)

    def generate(
        self,
        n_persons: int = 1000,
        n_products: int = 200,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Snapshot:
        """Generate a conformed snapshot"""
        start_date = start_date or datetime(2017, 1, 1)
        end_date = end_date or datetime(2018, 8, 31)

        persons = PersonGenerator(self.fake, self.rng).generate(n_persons)
        products, translation = ProductGenerator(self.fake, self.rng).generate(n_products)
        orders, items, customers = OrderGenerator(
            self.fake, self.rng, persons, products
        ).generate(start_date, end_date)

        return Snapshot.from_frames(
            orders=orders,
            order_items=items,
            customers=customers,
            products=products,
            category_translation=translation,
        )
