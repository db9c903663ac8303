from services.chat.local_responder import DEFAULT_RESPONSE, KNOWLEDGE_BASE, LocalResponder

from conftest import FixedChoice


def test_fertilizer_question_answers_from_soil_health():
    responder = LocalResponder()
    reply = responder.respond("What fertilizer should I use?")
    assert reply in LocalResponder.candidates("soil_health")


def test_first_matching_category_wins():
    # "soil" and "pest" both match; soil_health is checked first.
    assert LocalResponder.match_category("Soil pests are eating my roots") == "soil_health"


def test_keywords_are_case_insensitive():
    assert LocalResponder.match_category("IRRIGATION schedule?") == "water_management"


def test_unmatched_message_gets_default_response():
    responder = LocalResponder()
    assert responder.respond("hello there") == DEFAULT_RESPONSE


def test_injected_rng_selects_response():
    responder = LocalResponder(rng=FixedChoice())
    assert responder.respond("frost tonight") == LocalResponder.candidates("weather_climate")[0]


def test_every_category_has_four_responses():
    for _, keywords, responses in KNOWLEDGE_BASE:
        assert keywords
        assert len(responses) == 4


def test_category_order_is_fixed():
    assert [category for category, _, _ in KNOWLEDGE_BASE] == [
        "soil_health",
        "pest_control",
        "water_management",
        "crop_selection",
        "weather_climate",
    ]


def test_overlapping_keywords_resolve_by_table_order():
    assert LocalResponder.match_category("How much water does my new crop need?") == "water_management"
    assert LocalResponder.match_category("Best crop for a rainy season") == "crop_selection"
