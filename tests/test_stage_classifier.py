"""Stage classification of entity names"""
import pytest

from audit_core.src.ordering.stages import StageClassifier, StageDefinition, UNCLASSIFIED_STAGE


class TestStageClassifier:
    """Default stage table from base_params.json"""

    @pytest.fixture
    def classifier(self):
        return StageClassifier.from_params()

    @pytest.mark.parametrize("entity_name, expected", [
        ("PlannedObligation", 0),
        ("PhysicalObligationEodRawData", 0),
        ("Trade", 1),
        ("PhysicalTrade", 1),
        ("TradeCost", 2),
        ("Cashflow", 2),
        ("Shipment", 3),
        ("Container", 3),
        ("StockMovement", 4),
        ("Actualization", 5),
        ("ActualizedQuantityObligation", 5),
        ("Pricing", 6),
        ("PriceFixation", 6),
        ("Invoice", 7),
    ])
    def test_known_entities(self, classifier, entity_name, expected):
        assert classifier.classify(entity_name) == expected

    def test_trade_cost_goes_to_cost_stage(self, classifier):
        """'TradeCost' contains 'trade' but must not land in the trade stage"""
        assert classifier.classify("TradeCost") == classifier.classify("Cost")
        assert classifier.stage_name(classifier.classify("TradeCost")) == "cost"

    def test_case_insensitive(self, classifier):
        assert classifier.classify("TRADE") == classifier.classify("trade") == 1

    @pytest.mark.parametrize("entity_name", ["Unknown", "", None])
    def test_unmatched_goes_last(self, classifier, entity_name):
        assert classifier.classify(entity_name) == classifier.terminal_key == 8
        assert classifier.stage_name(classifier.classify(entity_name)) == UNCLASSIFIED_STAGE

    def test_first_match_wins(self):
        classifier = StageClassifier([
            StageDefinition("a", ("alpha",)),
            StageDefinition("b", ("alphabet",)),
        ])
        assert classifier.classify("Alphabet") == 0

    def test_exclusion_only_skips_its_own_stage(self):
        classifier = StageClassifier([
            StageDefinition("trade", ("trade",), exclude=("cost",)),
        ])
        assert classifier.classify("Trade") == 0
        assert classifier.classify("TradeCost") == 1

    def test_stage_names_end_with_unclassified(self, classifier):
        names = classifier.stage_names()
        assert names[0] == "planned_obligation"
        assert names[-1] == UNCLASSIFIED_STAGE
        assert len(names) == classifier.terminal_key + 1

    def test_deterministic(self, classifier):
        results = {classifier.classify("ContainerMovement") for _ in range(5)}
        assert results == {3}
