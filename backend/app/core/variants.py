from typing import Dict, List

# Generic category keywords over-match in the feed index ("Smartphone" hits phone cases),
# so they are fanned out into brand-specific queries.
VARIANT_MAP: Dict[str, List[str]] = {
    "smartphone": [
        "Samsung Galaxy Smartphone",
        "iPhone Apple",
        "Xiaomi Redmi Smartphone",
        "Google Pixel",
        "OnePlus Smartphone",
        "Motorola Smartphone",
    ],
    "handy": [
        "Samsung Galaxy Smartphone",
        "iPhone Apple",
        "Xiaomi Smartphone",
    ],
    "laptop": [
        "Lenovo Laptop Notebook",
        "HP Laptop Notebook",
        "Dell Laptop",
        "ASUS Laptop",
        "Acer Laptop Notebook",
        "Apple MacBook",
    ],
    "notebook": [
        "Lenovo Notebook Laptop",
        "HP Notebook Laptop",
        "ASUS Notebook",
        "Acer Notebook",
    ],
    "monitor": [
        "Samsung Monitor",
        "LG Monitor",
        "ASUS Monitor",
        "Dell Monitor",
        "AOC Monitor",
        "BenQ Monitor",
    ],
    "bildschirm": [
        "Samsung Monitor",
        "LG Monitor",
        "Dell Monitor",
    ],
    "fernseher": [
        "Samsung TV Fernseher",
        "LG TV OLED",
        "Sony Fernseher",
        "TCL Fernseher",
        "Hisense Fernseher",
    ],
    "tv": [
        "Samsung TV Fernseher",
        "LG TV OLED",
        "Sony TV",
    ],
    "tablet": [
        "Apple iPad",
        "Samsung Galaxy Tab",
        "Lenovo Tab",
    ],
    "kopfhörer": [
        "Sony Kopfhörer",
        "Bose Headphones",
        "Samsung Galaxy Buds",
        "Apple AirPods",
    ],
}


def search_variants(keyword: str) -> List[str]:
    """
    Brand-specific queries for a generic product keyword, or [keyword] when the
    keyword is specific enough already.
    """
    low = (keyword or "").lower()
    for generic, variants in VARIANT_MAP.items():
        if generic in low:
            return list(variants)
    return [keyword]
