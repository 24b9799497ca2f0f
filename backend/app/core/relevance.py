from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

# Substrings that mark a title as accessory / noise rather than the product itself.
# Matched case-insensitively anywhere in the title, so German compounds
# ("Laptophülle", "Monitorständer", "Ersatzfernbedienung") are caught too.
ACCESSORY_TERMS: Tuple[str, ...] = (
    # cases & bags
    "hülle", "huelle", "tasche", "case", "cover", "sleeve", "bag", "etui", "schutzhülle",
    # screen protection
    "panzerglas", "schutzglas", "schutzfolie", "displayschutz", "displayfolie", "screen protector",
    # power & cables
    "kabel", "cable", "ladegerät", "ladegeraet", "ladestation", "netzteil", "charger",
    "powerbank", "adapter", "usb-hub",
    # mounts & stands
    "halterung", "halter", "ständer", "staender", "wandhalterung", "laptop-arm", "monitorarm",
    "monitor-arm", "ergänzung", "dockingstation", "docking", "portreplikator",
    # peripherals
    "fernbedienung", "tastatur für", "keyboard für", "keyboard for", "maus ", "mouse", "mauspad",
    "eingabestift", "stylus",
    # furniture & stationery
    "schreibtisch", "stuhl", "regal", "mappe", "ordner", "textmarker", "kugelschreiber",
    "umreifung", "karton", "etikett",
    # cleaning
    "reinigung", "reiniger", "putztuch",
    # generic
    "zubehör", "zubehoer", "ersatzteil", "accessory", "accessories", "spare part",
)

# Peripherals only count as the item itself when the title leads with them;
# laptop titles often list "deutsche Tastatur" as a feature.
ACCESSORY_LEADING_TERMS: Tuple[str, ...] = ("tastatur", "keyboard", "maus", "mouse")

# Smaller list checked against the *query*: the user asked for an accessory on purpose.
ACCESSORY_INTENT_TERMS: Tuple[str, ...] = (
    "hülle", "huelle", "tasche", "case", "cover", "sleeve", "bag",
    "kabel", "cable", "ladegerät", "charger", "adapter", "powerbank",
    "halterung", "halter", "ständer", "dockingstation", "docking",
    "panzerglas", "schutzfolie", "displayschutz",
    "maus", "mouse", "tastatur", "keyboard", "fernbedienung",
    "zubehör", "accessory", "accessories", "ersatzteil",
)


# Rule terms up to this length are matched as whole words
SHORT_TERM_MAX_LEN = 4


@dataclass(frozen=True)
class CategoryRules:
    brands: Tuple[str, ...]
    specs: Tuple[str, ...] = ()
    exclusions: Tuple[str, ...] = ()


CATEGORY_RULES: Dict[str, CategoryRules] = {
    "smartphone": CategoryRules(
        brands=("samsung", "apple", "iphone", "xiaomi", "redmi", "poco", "google pixel", "pixel",
                "oneplus", "motorola", "moto g", "nokia", "oppo", "realme", "honor", "huawei",
                "sony xperia", "xperia", "fairphone", "nothing phone", "vivo", "galaxy"),
        specs=("dual-sim", "dual sim", "5g", "128 gb", "256 gb", "128gb", "256gb", "android"),
        exclusions=("hülle", "case", "cover", "panzerglas", "schutzfolie", "halter", "ladegerät",
                    "kabel", "textmarker", "umreifung", "attrappe", "dummy"),
    ),
    "laptop": CategoryRules(
        brands=("lenovo", "hp", "dell", "asus", "acer", "apple", "macbook", "microsoft surface",
                "surface", "msi", "medion", "huawei matebook", "samsung galaxy book", "fujitsu",
                "toshiba", "dynabook", "razer", "gigabyte", "xmg", "schenker"),
        specs=("thinkpad", "ideapad", "yoga", "latitude", "inspiron", "xps", "vostro", "probook",
               "elitebook", "pavilion", "envy", "zenbook", "vivobook", "rog", "tuf gaming",
               "aspire", "swift", "nitro", "predator", "chromebook", "intel core", "core i3",
               "core i5", "core i7", "core i9", "ryzen", "m1", "m2", "m3"),
        exclusions=("hülle", "tasche", "sleeve", "arm", "ständer", "halter", "dockingstation",
                    "docking", "portreplikator", "netzteil", "ladegerät", "akku für", "ersatz",
                    "tastatur für", "schutzfolie", "ergänzung", "rucksack"),
    ),
    "monitor": CategoryRules(
        brands=("samsung", "lg", "asus", "dell", "aoc", "benq", "acer", "philips", "msi", "iiyama",
                "viewsonic", "lenovo", "hp", "gigabyte", "eizo", "xiaomi"),
        specs=("zoll", "hz", "full hd", "wqhd", "qhd", "4k", "uhd", "ips", "va-panel", "curved",
               "ultrasharp", "odyssey", "ultragear", "proart"),
        exclusions=("arm", "halterung", "ständer", "halter", "kabel", "reinigung", "schutzfolie",
                    "blendschutz", "tischhalterung", "wandhalterung"),
    ),
    "tv": CategoryRules(
        brands=("samsung", "lg", "sony", "bravia", "tcl", "hisense", "philips", "panasonic",
                "grundig", "telefunken", "xiaomi", "toshiba", "metz", "loewe", "sharp"),
        specs=("oled", "qled", "neo qled", "4k", "uhd", "8k", "smart tv", "zoll", "hdr", "ambilight",
               "fernseher"),
        exclusions=("fernbedienung", "wandhalterung", "halterung", "ständer", "kabel",
                    "reinigung", "schutzfolie", "lowboard", "tv-board"),
    ),
    "tablet": CategoryRules(
        brands=("apple", "ipad", "samsung", "galaxy tab", "lenovo", "xiaomi", "huawei", "microsoft",
                "amazon fire", "fire hd", "honor", "realme"),
        specs=("wi-fi", "wifi", "lte", "5g", "64 gb", "128 gb", "256 gb", "zoll", "android"),
        exclusions=("hülle", "case", "cover", "tasche", "panzerglas", "schutzfolie", "tastatur für",
                    "stift", "pencil", "halter", "ständer"),
    ),
    "kopfhörer": CategoryRules(
        brands=("sony", "bose", "sennheiser", "apple", "airpods", "beats", "jabra", "jbl",
                "samsung", "galaxy buds", "bang & olufsen", "anker", "soundcore", "audio-technica",
                "beyerdynamic", "skullcandy", "shure"),
        specs=("in-ear", "over-ear", "on-ear", "noise cancelling", "anc", "bluetooth", "true wireless"),
        exclusions=("ohrpolster", "ersatz", "hülle", "case", "ständer", "halter", "kabel",
                    "adapter", "ladecase"),
    ),
}

# Keyword spellings that share a rule set
CATEGORY_ALIASES: Dict[str, str] = {
    "handy": "smartphone",
    "handys": "smartphone",
    "smartphones": "smartphone",
    "mobiltelefon": "smartphone",
    "iphone": "smartphone",
    "notebook": "laptop",
    "notebooks": "laptop",
    "laptops": "laptop",
    "bildschirm": "monitor",
    "monitore": "monitor",
    "fernseher": "tv",
    "smart tv": "tv",
    "television": "tv",
    "tablets": "tablet",
    "ipad": "tablet",
    "kopfhoerer": "kopfhörer",
    "headphones": "kopfhörer",
    "earbuds": "kopfhörer",
}


def _contains_any(text: str, terms: Tuple[str, ...]) -> bool:
    return any(t in text for t in terms)


def _word_start_match(text: str, terms: Tuple[str, ...]) -> bool:
    # A term must start at a word boundary ("hp" matches "HP ProBook", not "shop").
    # Short terms must also end at one ("rog" is not "Rogue", "arm" is not "Armoury");
    # longer ones keep prefix matching for German compounds ("Ersatzakku").
    for t in terms:
        pattern = r"(?<!\w)" + re.escape(t)
        if len(t) <= SHORT_TERM_MAX_LEN:
            pattern += r"(?!\w)"
        if re.search(pattern, text):
            return True
    return False


def is_accessory(title: str) -> bool:
    t = (title or "").lower().strip()
    return _contains_any(t, ACCESSORY_TERMS) or t.startswith(ACCESSORY_LEADING_TERMS)


def is_accessory_requested(query: str) -> bool:
    q = (query or "").lower()
    return _contains_any(q, ACCESSORY_INTENT_TERMS)


def resolve_category(keyword: str) -> Optional[str]:
    """
    Map a search keyword to a CATEGORY_RULES key.
    Exact keys and aliases win; otherwise the first key or alias found as a word in the keyword.
    """
    k = re.sub(r"\s+", " ", (keyword or "").strip().lower())
    if not k:
        return None
    if k in CATEGORY_RULES:
        return k
    if k in CATEGORY_ALIASES:
        return CATEGORY_ALIASES[k]

    words = set(re.findall(r"\w+", k))
    for name in CATEGORY_RULES:
        if name in words:
            return name
    for alias, name in CATEGORY_ALIASES.items():
        if alias in words or (" " in alias and alias in k):
            return name
    return None


def is_relevant_product(title: str, keyword: str) -> bool:
    """
    Positive category check: unknown categories pass, known ones need a brand or
    spec hit and no exclusion hit.
    """
    category = resolve_category(keyword)
    if category is None:
        return True

    rules = CATEGORY_RULES[category]
    t = (title or "").lower()

    if _word_start_match(t, rules.exclusions):
        return False
    return _word_start_match(t, rules.brands) or _word_start_match(t, rules.specs)
