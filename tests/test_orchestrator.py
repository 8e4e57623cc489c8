"""
Unit tests for the Pipeline Orchestrator sweeps.
"""

import pytest
from datetime import date
from unittest.mock import Mock, patch

from src.errors import MissingTotalCount, RunCancelled
from src.models.analysis import AnalysisResult
from src.orchestrator import PipelineOrchestrator
from src.registry.entity_registry import Entity
from src.utils.cancellation import CancellationToken
from src.utils.storage import JsonReviewStore


HOTELS = [
    Entity(id="h1", name="Alpha", partner_id="1", table_id="Alpha"),
    Entity(id="h2", name="Beta", partner_id="1", table_id="Beta"),
    Entity(id="h3", name="Gamma", partner_id="1", table_id="Gamma"),
]


@pytest.fixture
def store(tmp_path):
    return JsonReviewStore(str(tmp_path))


def analysis_result(analyzed):
    return AnalysisResult(
        analysis_date=None,
        total_reviews=100,
        analyzed_reviews=analyzed,
        days_analyzed=0,
        overall_sentiment="",
        positive_points="",
        negative_points="",
        common_themes="",
        areas_for_improvement="",
    )


def test_ingestion_failure_does_not_stop_sweep(store):
    ingestion = Mock()
    ingestion.ingest.side_effect = [3, RuntimeError("boom"), 2]
    orchestrator = PipelineOrchestrator(store, ingestion)

    report = orchestrator.run_ingestion(HOTELS)

    assert ingestion.ingest.call_count == 3
    assert [o.success for o in report.outcomes] == [True, False, True]
    assert report.total_new_reviews == 5
    assert report.failures[0].entity_name == "Beta"
    assert "boom" in report.failures[0].status_line()
    assert report.summary() == "2/3 operations succeeded, 5 new reviews"


def test_analysis_by_count_is_default(store):
    coordinator = Mock()
    coordinator.run_by_count.return_value = analysis_result(4)
    orchestrator = PipelineOrchestrator(store, Mock(), coordinator)

    report = orchestrator.run_analysis(HOTELS[:1])

    coordinator.run_by_count.assert_called_once()
    assert coordinator.run_by_count.call_args.args[1] == 30
    assert report.outcomes[0].analyzed_reviews == 4


def test_analysis_by_window_and_missing_total(store):
    coordinator = Mock()
    coordinator.run_by_window.side_effect = [MissingTotalCount("none"), None, analysis_result(2)]
    orchestrator = PipelineOrchestrator(store, Mock(), coordinator)

    report = orchestrator.run_analysis(HOTELS, days=7)

    assert [o.success for o in report.outcomes] == [False, True, True]
    assert [o.analyzed_reviews for o in report.outcomes] == [None, 0, 2]
    assert coordinator.run_by_window.call_args.args[1] == 7


def test_analysis_without_coordinator_raises(store):
    orchestrator = PipelineOrchestrator(store, Mock())

    with pytest.raises(RuntimeError):
        orchestrator.run_analysis(HOTELS)


def test_locked_hotel_is_reported_as_failure(store):
    ingestion = Mock()
    ingestion.ingest.return_value = 1
    orchestrator = PipelineOrchestrator(store, ingestion)

    with store.lock(HOTELS[0]):
        report = orchestrator.run_ingestion(HOTELS[:2])

    assert [o.success for o in report.outcomes] == [False, True]
    assert "locked" in report.outcomes[0].error
    assert ingestion.ingest.call_count == 1


def test_cancellation_stops_sweep(store):
    token = CancellationToken()
    ingestion = Mock()

    def ingest(entity, cancel_token):
        token.cancel()
        raise RunCancelled("cancelled")

    ingestion.ingest.side_effect = ingest
    orchestrator = PipelineOrchestrator(store, ingestion, cancel_token=token)

    report = orchestrator.run_ingestion(HOTELS)

    assert report.cancelled
    assert len(report.outcomes) == 1
    assert "cancelled" in report.summary()


def test_daily_update_runs_analysis_on_first_of_month(store):
    ingestion = Mock()
    ingestion.ingest.return_value = 1
    coordinator = Mock()
    coordinator.run_by_window.return_value = analysis_result(1)
    orchestrator = PipelineOrchestrator(store, ingestion, coordinator)

    orchestrator.run_daily_update(HOTELS, date(2024, 7, 1))
    assert coordinator.run_by_window.call_count == 3
    assert coordinator.run_by_window.call_args.args[1] == 30

    coordinator.reset_mock()
    orchestrator.run_daily_update(HOTELS, date(2024, 7, 2))
    coordinator.run_by_window.assert_not_called()


def test_setup_tables(store, tmp_path):
    orchestrator = PipelineOrchestrator(store, Mock())

    report = orchestrator.setup_tables(HOTELS)

    assert all(o.success for o in report.outcomes)
    assert (tmp_path / "analysis" / "Gamma_analysis.jsonl").exists()


def test_from_settings_builds_components(tmp_path):
    with patch("src.utils.llm.genai"):
        orchestrator = PipelineOrchestrator.from_settings(api_key="test-key", data_root=str(tmp_path))

    assert orchestrator.analysis_coordinator is not None
    assert orchestrator.ingestion_agent.fetch_client.page_size == 50


def test_from_settings_without_key_skips_analysis(tmp_path):
    orchestrator = PipelineOrchestrator.from_settings(api_key=None, data_root=str(tmp_path))

    assert orchestrator.analysis_coordinator is None


# Run tests if executed directly
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
