"""Create demo stories for development/testing."""

import logging

from avventura.storage import StoryStore

logger = logging.getLogger(__name__)

DEMO_STORIES = [
    {
        "slug": "montpellier",
        "title": "Montpellier Médiéval",
        "content": (
            "# Montpellier, 10th century\n\n"
            "You are a young apprentice spice merchant arriving in the small "
            "settlement of Montpellier, on the road between Nîmes and Béziers. "
            "The Guilhem family is extending its influence, pilgrims pass "
            "through on the way to Santiago, and the market smells of pepper "
            "and cumin brought back from the Levant.\n\n"
            "## Milestones\n\n"
            "- Meeting a member of the Guilhem family\n"
            "- Being admitted to the merchants' brotherhood\n"
        ),
        "homepage_display": {
            "fr": {
                "title": "Montpellier Médiéval",
                "description": "Explorez la vie médiévale à Montpellier au 10ème siècle!",
            },
            "en": {
                "title": "Medieval Montpellier",
                "description": "Explore medieval life in 10th century Montpellier!",
            },
            "es": {
                "title": "Montpellier Medieval",
                "description": "¡Explora la vida medieval en Montpellier del siglo X!",
            },
        },
    },
    {
        "slug": "cretace",
        "title": "Crétacé Sup",
        "content": (
            "# Late Cretaceous seas\n\n"
            "You are a scallop drifting in a warm epicontinental sea, 70 "
            "million years ago. Ammonites hunt in the open water, mosasaurs "
            "patrol the surface, and the seabed is your whole world.\n\n"
            "## Milestones\n\n"
            "- Escaping a predator by swimming\n"
            "- Witnessing the first fossilisation of a neighbour\n"
        ),
        "homepage_display": {
            "fr": {
                "title": "Crétacé Sup",
                "description": "Découvrez l'univers fascinant des pectinidés!",
            },
            "en": {
                "title": "Cretaceous Era",
                "description": "Discover the fascinating world of scallops!",
            },
        },
    },
    {
        "slug": "truman",
        "title": "The Truman Show",
        "content": (
            "# Seahaven\n\n"
            "You have lived your whole life in the town of Seahaven. Lately "
            "the lights fall from the sky, the radio talks about you, and "
            "your neighbours repeat the same sentences every morning.\n\n"
            "## Milestones\n\n"
            "- Reaching the edge of the dome\n"
        ),
        "homepage_display": {
            "en": {
                "title": "The Truman Show",
                "description": "Experience the real world for the first time after a lifetime in a TV show!",
            },
        },
    },
]


def create_demo_data(store: StoryStore) -> list[str]:
    """Upsert the demo stories. Returns the seeded slugs."""
    slugs = []
    for story in DEMO_STORIES:
        store.upsert_story(
            slug=story["slug"],
            title=story["title"],
            content=story["content"],
            homepage_display=story["homepage_display"],
        )
        slugs.append(story["slug"])
    logger.info("seeded %d demo stories", len(slugs))
    return slugs
