"""
Tests for semantic tag extraction from workout comments.
"""

from coach_engine.semantic_tags import SemanticTag, extract_semantic_tags, extract_tag_values


def test_short_or_missing_comment_yields_nothing():
    assert extract_semantic_tags(None) == []
    assert extract_semantic_tags("ok") == []
    assert extract_semantic_tags("   ") == []


def test_tags_in_vocabulary_order():
    signals = extract_semantic_tags("Went out too fast and blew up. Heavy legs after that.")

    assert [s.tag for s in signals] == [SemanticTag.HEAVY_LEGS, SemanticTag.PACING_ISSUE]
    assert signals[0].source_phrase == "heavy legs"
    assert signals[0].confidence == 85
    assert signals[1].source_phrase == "went out too fast"
    assert signals[1].confidence == 80


def test_overlapping_tags_are_all_reported():
    signals = extract_semantic_tags("Felt strong, nailed it")

    assert [s.tag for s in signals] == [
        SemanticTag.HIGH_ENERGY,
        SemanticTag.GREAT_SESSION,
        SemanticTag.FELT_STRONG,
    ]


def test_each_tag_reported_once():
    signals = extract_semantic_tags("knee hurts, pain in my knee, sharp pain")

    assert len(signals) == 1
    assert signals[0].tag == SemanticTag.PAIN_DISCOMFORT
    assert signals[0].confidence == 90


def test_matching_is_case_insensitive():
    assert extract_tag_values("COULDN'T FOCUS, no motivation") == ["mental_fatigue", "motivation_low"]


def test_label():
    assert SemanticTag.HEAVY_LEGS.label == "heavy legs"
    assert SemanticTag.STRUGGLED_TO_START.label == "struggled to start"
