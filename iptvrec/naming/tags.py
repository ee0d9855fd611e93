"""Content tags derived from event-style channel names.

Event channels are often named like ``13:15 Fotboll | Allsvenskan`` or
``Cykel: Tour de France Etapp 5``.  The sport keywords and numbered stages
found in the name are added to the recording's file name.
"""

from __future__ import annotations

import re
from typing import List

# Swedish, English, Finnish, Norwegian, Danish, Italian, Spanish and French only.
SPORTS_KEYWORDS = (
    "fotboll", "football", "soccer", "fútbol", "futbol", "calcio", "jalkapallo", "fotball", "fodbold",
    "ishockey", "ice hockey", "hockey",
    "handboll", "handball", "balonmano", "pallamano", "håndball", "håndbold",
    "basket", "basketball", "baloncesto", "pallacanestro", "koripallo",
    "tennis", "tenis",
    "bordtennis", "table tennis", "pingis",
    "badminton",
    "baseboll", "baseball", "béisbol",
    "rugby",
    "amerikansk fotboll", "american football",
    "innebandy", "floorball", "salibandy",
    "volleyboll", "volleyball", "voleibol", "pallavolo", "lentopallo",
    "friidrott", "athletics", "atletismo", "atletica", "yleisurheilu",
    "simning", "swimming", "natation", "natación", "nuoto", "uinti",
    "cykel", "cycling", "ciclismo", "pyöräily", "sykling",
    "Tour de France", "Giro d'Italia", "Vuelta a España", "Paris-Roubaix",
    "etapp", "stage", "etape", "tappa", "etapa",
    "skidåkning", "skiing", "hiihto", "langrenn", "alpint",
    "snowboard",
    "gymnastik", "gymnastics", "gimnasia", "ginnastica", "voimistelu",
    "boxning", "boxing", "boxe", "boxeo", "nyrkkeily",
    "brottning", "wrestling",
    "ridsport", "equestrian", "équitation", "ratsastus",
    "segling", "sailing", "voile", "purjehdus",
    "triathlon",
    "golf",
)

STAGE_WORDS = ("Etapp", "Stage", "Etape", "Tappa", "Etapa")

_TIME_PREFIX = re.compile(r"^\d{1,2}:\d{2} ")
_PART_SEPARATORS = re.compile(r"\||\[")
_NUMBERED_STAGE = re.compile(r"(etapp|stage|etape|tappa|etapa) ?(\d+)", re.IGNORECASE)


def _tagify(word: str) -> str:
    return re.sub(r"[^A-Za-z0-9_]", "_", word)


def extract_event_tags(channel_name: str) -> List[str]:
    """Returns unique sport keywords and numbered stages in ``channel_name``.

    A plain stage word is dropped when a numbered form of it was found, so
    ``Etapp 5`` yields ``Etapp_5`` rather than both ``Etapp`` and ``Etapp_5``.
    """
    if not channel_name:
        return []
    name = _TIME_PREFIX.sub("", channel_name, count=1).strip()
    matches: List[str] = []
    stages: List[str] = []
    for part in _PART_SEPARATORS.split(name):
        lowered = part.lower()
        for keyword in SPORTS_KEYWORDS:
            if keyword.lower() in lowered:
                tag = _tagify(keyword[0].upper() + keyword[1:])
                if tag not in matches:
                    matches.append(tag)
        for word, number in _NUMBERED_STAGE.findall(part):
            tag = _tagify(word.capitalize() + "_" + number)
            if tag not in stages:
                stages.append(tag)

    for stage_word in STAGE_WORDS:
        if any(s.startswith(stage_word + "_") for s in stages) and stage_word in matches:
            matches.remove(stage_word)
    return matches + stages
