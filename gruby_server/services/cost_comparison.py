from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..schemas import DeliveryCost, HomeCookedCost, MealComparison, PriceLookupResponse

SERVINGS = 4
FALLBACK_PRICE_PER_INGREDIENT = 3.5


@dataclass(frozen=True)
class DemoMeal:
    meal: str
    image: str
    delivery: DeliveryCost
    ingredients: Sequence[str]


def _delivery(price: float, fees: float, tip: float) -> DeliveryCost:
    return DeliveryCost(price=price, fees=fees, tip=tip, total=round(price + fees + tip, 2))


DEMO_MEALS: List[DemoMeal] = [
    DemoMeal(
        meal="Chicken Stir Fry",
        image="https://images.pexels.com/photos/2673353/pexels-photo-2673353.jpeg?auto=compress&cs=tinysrgb&w=800",
        delivery=_delivery(16.99, 3.5, 3.0),
        ingredients=("Chicken breast", "Bell pepper", "Broccoli", "Rice", "Soy sauce"),
    ),
    DemoMeal(
        meal="Pasta Carbonara",
        image="https://images.pexels.com/photos/4518843/pexels-photo-4518843.jpeg?auto=compress&cs=tinysrgb&w=800",
        delivery=_delivery(15.99, 3.25, 2.75),
        ingredients=("Pasta", "Bacon", "Eggs", "Parmesan cheese", "Heavy cream"),
    ),
    DemoMeal(
        meal="Burger & Fries",
        image="https://images.pexels.com/photos/1639557/pexels-photo-1639557.jpeg?auto=compress&cs=tinysrgb&w=800",
        delivery=_delivery(14.99, 3.0, 2.5),
        ingredients=("Ground beef", "Hamburger buns", "Cheese", "Potatoes", "Lettuce"),
    ),
]


def compare_meal_cost(
    meal: str,
    delivery: DeliveryCost,
    ingredients: Sequence[str],
    home_total: Optional[float],
    *,
    image: Optional[str] = None,
) -> MealComparison:
    """Savings of cooking at home versus delivery, per serving.

    A missing or zero `home_total` falls back to a flat estimate per ingredient.
    """
    estimated = not home_total or home_total <= 0
    total = len(ingredients) * FALLBACK_PRICE_PER_INGREDIENT if estimated else float(home_total)
    per_serving = total / SERVINGS
    savings = delivery.total - per_serving
    # Halves round up, never to even.
    savings_percent = math.floor(savings / delivery.total * 100 + 0.5) if delivery.total else 0
    return MealComparison(
        meal=meal,
        image=image,
        delivery=delivery,
        homeCooked=HomeCookedCost(
            ingredients=list(ingredients),
            price=round(total, 2),
            servings=SERVINGS,
            perServing=round(per_serving, 2),
            estimated=estimated,
        ),
        savings=round(savings, 2),
        savingsPercent=savings_percent,
    )


def compare_demo_meal(demo: DemoMeal, prices: Optional[PriceLookupResponse]) -> MealComparison:
    home_total = None
    if prices is not None and prices.foundPrices:
        home_total = prices.total
    return compare_meal_cost(demo.meal, demo.delivery, demo.ingredients, home_total, image=demo.image)
