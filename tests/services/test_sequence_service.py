"""Tests for per-year document numbering."""

from stock_kernel.services.sequence_service import SequenceService


class TestDocumentNumbers:
    def test_first_number(self, session):
        assert SequenceService(session).next_document_number("NCR", 2024) == "NCR-2024-001"

    def test_sequential_within_a_year(self, session):
        numbers = SequenceService(session)
        allocated = [numbers.next_document_number("DEL", 2024) for _ in range(3)]
        assert allocated == ["DEL-2024-001", "DEL-2024-002", "DEL-2024-003"]

    def test_each_year_restarts(self, session):
        numbers = SequenceService(session)
        numbers.next_document_number("DEL", 2024)
        numbers.next_document_number("DEL", 2024)

        assert numbers.next_document_number("DEL", 2025) == "DEL-2025-001"

    def test_prefixes_are_independent(self, session):
        numbers = SequenceService(session)
        numbers.next_document_number("DEL", 2024)
        assert numbers.next_document_number("ISS", 2024) == "ISS-2024-001"

    def test_padding_grows_past_width(self, session):
        numbers = SequenceService(session)
        for _ in range(999):
            numbers.next_value("TRF-2024")
        assert numbers.next_document_number("TRF", 2024) == "TRF-2024-1000"

    def test_custom_padding(self, session):
        assert SequenceService(session).next_document_number("NCR", 2024, padding=5) == "NCR-2024-00001"


class TestCounters:
    def test_current_value_of_unused_counter(self, session):
        assert SequenceService(session).current_value("NCR-2030") is None

    def test_rollback_returns_the_number(self, session):
        numbers = SequenceService(session)
        numbers.next_value("ISS-2024")
        session.commit()
        numbers.next_value("ISS-2024")
        session.rollback()

        assert numbers.current_value("ISS-2024") == 1
        assert numbers.next_value("ISS-2024") == 2
