"""Tests for the intent classifier."""
from planora.services.intent_classifier import UserIntent, classify


class TestIntentClassifier:
    """Test utterance tagging."""

    def test_why_question(self):
        """A 'why' question is a question."""
        intent = classify("why do you need the city")

        assert intent.is_question
        assert intent.needs_special_handling

    def test_question_mark(self):
        """A trailing question mark is a question."""
        assert classify("Can it be outdoors?").is_question

    def test_plain_answer_needs_no_special_handling(self):
        """Plain answers go straight to extraction."""
        intent = classify("A birthday for 20 people in Tel Aviv")

        assert intent == UserIntent()
        assert not intent.needs_special_handling

    def test_restart_is_challenge(self):
        """Starting over is a challenge."""
        intent = classify("let's start over")

        assert intent.is_challenge
        assert intent.needs_special_handling

    def test_skip_is_challenge(self):
        """Skipping is a challenge."""
        assert classify("skip this").is_challenge

    def test_back_request(self):
        """Going back is detected."""
        intent = classify("I want to go back")

        assert intent.is_back_request
        assert intent.needs_special_handling

    def test_help_request(self):
        """Asking for help is detected."""
        assert classify("help").is_help_request

    def test_empty_utterance(self):
        """Empty input has no intent."""
        assert classify("   ") == UserIntent()

    def test_deterministic(self):
        """Same input, same classification."""
        text = "What does private mean?"
        assert classify(text) == classify(text)

    def test_to_dict_keys(self):
        """Serialized intent keys."""
        data = classify("why?").to_dict()

        assert data == {
            "isQuestion": True,
            "isChallenge": False,
            "isHelpRequest": False,
            "isBackRequest": False,
            "needsSpecialHandling": True,
        }
